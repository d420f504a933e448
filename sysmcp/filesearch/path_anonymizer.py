"""User-profile path and author anonymization for file search results.

Delegates to the shared PiiAnonymizer username category, so a person gets
the same token in file paths, author fields and event-log messages.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Iterable, Mapping
from typing import Any, ClassVar

from sysmcp.anonymization.anonymizer import PiiAnonymizer
from sysmcp.filesearch.models import FileSearchEntry


class PathAnonymizer:
    """Anonymizes file paths and author metadata."""

    _WINDOWS_PROFILE_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"^(?P<drive>[A-Za-z]):\\Users\\(?P<user>[^\\]+)(?P<rest>\\.*)?$",
        re.IGNORECASE | re.DOTALL,
    )
    _UNIX_HOME_RE: ClassVar[re.Pattern[str]] = re.compile(
        r"^/home/(?P<user>[^/]+)(?P<rest>/.*)?$", re.DOTALL
    )

    def __init__(self, anonymizer: PiiAnonymizer) -> None:
        self._anonymizer = anonymizer

    def anonymize_path(self, path: str | None) -> str | None:
        """Replace the profile segment of a user path with its token.

        C:\\Users\\john.doe\\Documents\\report.pdf -> C:\\Users\\[ANON_USER_XXXXXX]\\Documents\\report.pdf
        """
        if not path:
            return path

        match = self._WINDOWS_PROFILE_RE.match(path)
        if match:
            user = match.group("user")
            token = self._anonymizer.redact_profile_name(user) or user
            return f"{match.group('drive')}:{path[2:match.start('user')]}{token}{match.group('rest') or ''}"

        match = self._UNIX_HOME_RE.match(path)
        if match:
            user = match.group("user")
            token = self._anonymizer.redact_profile_name(user) or user
            return f"/home/{token}{match.group('rest') or ''}"

        return path

    def anonymize_author(self, author: str | None) -> str | None:
        """Replace a display name with its username-category token."""
        if not author:
            return author
        return self._anonymizer.redact_username(author)

    def anonymize_entry(
        self, entry: FileSearchEntry | Mapping[str, Any]
    ) -> FileSearchEntry | dict[str, Any]:
        """Return a new entry with path and author anonymized."""
        if isinstance(entry, FileSearchEntry):
            return dataclasses.replace(
                entry,
                path=self.anonymize_path(entry.path) or entry.path,
                author=self.anonymize_author(entry.author),
            )
        result = dict(entry)
        if "path" in result and isinstance(result["path"], str):
            result["path"] = self.anonymize_path(result["path"])
        if "author" in result and isinstance(result["author"], str):
            result["author"] = self.anonymize_author(result["author"])
        return result

    def anonymize_entries(
        self, entries: Iterable[FileSearchEntry | Mapping[str, Any]]
    ) -> list[FileSearchEntry | dict[str, Any]]:
        return [self.anonymize_entry(entry) for entry in entries]
