from dotenv import load_dotenv
import argparse
import logging
import sys
from typing import Iterable, List, Optional

from dradis_client.client import DradisClient
from dradis_client.config import load_api_key, load_dradis_config
from dradis_client.errors import DradisError

logger = logging.getLogger(__name__)


def _emit(rows: Iterable[Iterable[object]]) -> None:
    for row in rows:
        print("\t".join(str(c) for c in row))


def _split_field(value: str) -> List[str]:
    key, sep, val = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {value!r}")
    return [key, val]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Query a Dradis Pro server from the command line.")
    parser.add_argument(
        "--config",
        required=False,
        default=None,
        help="Path to a YAML/JSON config with dradis_url, api_key and verify. DRADIS_* env vars override it.",
    )
    parser.add_argument(
        "--log_level",
        required=False,
        help="Logging level (DEBUG, INFO, WARNING, ...). Defaults to INFO.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("projects", help="List projects.")
    sub.add_parser("teams", help="List teams.")
    sub.add_parser("issuelib", help="List issue library entries.")

    nodes = sub.add_parser("nodes", help="List nodes of a project.")
    nodes.add_argument("--project", required=True, help="Project name (case-insensitive).")

    issues = sub.add_parser("issues", help="List issues of a project.")
    issues.add_argument("--project", required=True, help="Project name (case-insensitive).")

    evidence = sub.add_parser("evidence", help="List evidence on a node.")
    evidence.add_argument("--project", required=True, help="Project name (case-insensitive).")
    evidence.add_argument("--node", required=True, help="Node label (case-insensitive).")
    evidence.add_argument("--issue", required=False, help="Only evidence for this issue title.")
    evidence.add_argument("--field", required=False, type=_split_field,
                          help="Only evidence whose field KEY equals VALUE exactly (KEY=VALUE).")
    return parser


def run(args: argparse.Namespace, client: DradisClient) -> None:
    if args.command == "projects":
        _emit((p.id, p.name, p.client.name) for p in client.get_all_projects())
    elif args.command == "teams":
        _emit((t.id, t.name, t.team_since) for t in client.get_all_teams())
    elif args.command == "issuelib":
        _emit((e.id, e.title) for e in client.get_issue_library())
    elif args.command == "nodes":
        project = client.get_project_by_name(args.project)
        _emit((n.id, n.label, n.parent_id, len(n.evidence), len(n.notes)) for n in client.get_all_nodes(project))
    elif args.command == "issues":
        project = client.get_project_by_name(args.project)
        _emit((i.id, i.title) for i in client.get_all_issues(project))
    elif args.command == "evidence":
        project = client.get_project_by_name(args.project)
        node = client.get_node_by_label(project, args.node)
        items = node.evidence
        if args.issue:
            items = node.get_evidence_by_issue_title(args.issue)
        if args.field:
            key, value = args.field
            matched = {id(e) for e in node.get_evidence_by_field(key, value)}
            items = [e for e in items if id(e) in matched]
        _emit((e.id, e.issue.title, e.fields.lookup("Port") or "") for e in items)


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=(args.log_level or "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    try:
        cfg = load_dradis_config(args.config)
        with DradisClient(cfg, load_api_key(args.config)) as client:
            run(args, client)
    except DradisError as exc:
        logger.error(f"{exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
