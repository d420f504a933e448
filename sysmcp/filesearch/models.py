from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class FileSearchEntry:
    """A file found by the search indexer; path and author may carry PII."""

    path: str
    file_name: str
    file_type: str  # lowercase extension with dot, e.g. ".docx"
    size: int
    date_modified: datetime
    date_created: datetime
    author: str | None = None
    title: str | None = None
    tags: list[str] = field(default_factory=list)
