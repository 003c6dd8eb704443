"""Construction project budget tracking with local/remote reconciliation."""

from .cache import LocalCache
from .columns import FIELD_CANDIDATES, resolve
from .config import Config, load_config
from .ingest import ingest, ingest_file, read_rows
from .metrics import aggregate, per_project_metrics
from .models import PortfolioSummary, ProjectMetrics, ProjectRecord
from .numeric import normalize
from .remote import DirectoryDocumentStore, DocumentStore
from .sync import SyncStatus, SyncStore

__all__ = [
    "LocalCache",
    "FIELD_CANDIDATES",
    "resolve",
    "Config",
    "load_config",
    "ingest",
    "ingest_file",
    "read_rows",
    "aggregate",
    "per_project_metrics",
    "PortfolioSummary",
    "ProjectMetrics",
    "ProjectRecord",
    "normalize",
    "DirectoryDocumentStore",
    "DocumentStore",
    "SyncStatus",
    "SyncStore",
]
