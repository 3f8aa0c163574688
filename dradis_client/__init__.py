"""
Client for the Dradis Pro REST API.
- DradisClient: one synchronous request per operation, entities wired to their parents
- models: Project / Team / Node / Issue / Evidence / Note / Attachment / IssueLibraryEntry
- fields: OrderedFieldMap and the #[Field]# block text renderer
"""
from .client import DradisClient, NodeDetails, ProjectDetails, TeamDetails
from .config import DradisConfig, load_api_key, load_dradis_config
from .errors import (
    ConfigError,
    DecodeError,
    DetachedEntityError,
    DradisError,
    FieldNotFoundError,
    NotFoundError,
    UnexpectedStatusError,
)
from .fields import OrderedFieldMap, render_fields
from .models import (
    Attachment,
    Evidence,
    EvidenceIssue,
    Issue,
    IssueLibraryEntry,
    Node,
    Note,
    Project,
    Team,
    TeamProject,
)
