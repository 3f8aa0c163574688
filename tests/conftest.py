# Common pytest fixtures for dradis_client tests.
# We ensure the project root (directory that contains the `dradis_client/` package) is in sys.path.

import os
import sys
import pytest

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from dradis_client.client import DradisClient  # noqa: E402
from dradis_client.config import DradisConfig  # noqa: E402
from dradis_client.models import Evidence, EvidenceIssue, Node, Note, Project  # noqa: E402
from dradis_client.fields import OrderedFieldMap  # noqa: E402


@pytest.fixture()
def dradis_base_url():
    return "https://dradis.test"

@pytest.fixture()
def api(dradis_base_url):
    return f"{dradis_base_url}/pro/api"

@pytest.fixture()
def dradis_token(monkeypatch):
    # Ensure code paths that read DRADIS_API_KEY do not fail
    monkeypatch.setenv("DRADIS_API_KEY", "test-token")
    return "test-token"

@pytest.fixture()
def client(dradis_base_url, dradis_token):
    return DradisClient(DradisConfig(url=dradis_base_url, verify_ssl=False), dradis_token)

@pytest.fixture()
def project():
    return Project(id=3, name="Foobar External")

@pytest.fixture()
def node(project):
    n = Node(
        id=7,
        label="WebServer",
        evidence=[
            Evidence(id=1, fields=OrderedFieldMap({"Port": "443/tcp"}), issue=EvidenceIssue(id=10, title="XSS")),
            Evidence(id=2, fields=OrderedFieldMap({"Port": "80/tcp"}), issue=EvidenceIssue(id=11, title="SQLi")),
            Evidence(id=3, fields=OrderedFieldMap({"Details": "x"}), issue=EvidenceIssue(id=10, title="xss")),
        ],
        notes=[Note(id=5, title="Nmap Host Info")],
    )
    return n.wire(project)
