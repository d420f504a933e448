"""File-backed persistence for anonymization mappings.

Writes are atomic: the JSON document goes to a temp file in the destination
directory and is then renamed over the destination, so readers never see a
partial file. Concurrent writers are not serialized; the last rename wins.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sysmcp.anonymization.exceptions import (
    MalformedMappingError,
    MappingNotFoundError,
    MappingStoreError,
)
from sysmcp.anonymization.models import AnonymizationMapping
from sysmcp.logging.logger import Log

FORMAT_VERSION = "1.0"


class PersistedMapping(BaseModel):
    """On-disk shape of a mapping file; missing tables default to empty."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    usernames: dict[str, str] = Field(default_factory=dict)
    computer_names: dict[str, str] = Field(default_factory=dict, alias="computerNames")
    ip_addresses: dict[str, str] = Field(default_factory=dict, alias="ipAddresses")
    emails: dict[str, str] = Field(default_factory=dict)
    paths: dict[str, str] = Field(default_factory=dict)
    timestamp: str | None = None
    version: str | None = None

    @classmethod
    def from_mapping(cls, mapping: AnonymizationMapping) -> PersistedMapping:
        return cls(
            usernames=dict(mapping.usernames),
            computer_names=dict(mapping.computer_names),
            ip_addresses=dict(mapping.ip_addresses),
            emails=dict(mapping.emails),
            paths=dict(mapping.paths),
            timestamp=datetime.now(timezone.utc).isoformat(),
            version=FORMAT_VERSION,
        )

    def to_mapping(self) -> AnonymizationMapping:
        return AnonymizationMapping(
            usernames=dict(self.usernames),
            computer_names=dict(self.computer_names),
            ip_addresses=dict(self.ip_addresses),
            emails=dict(self.emails),
            paths=dict(self.paths),
        )


class MappingStore:
    """Saves and loads an AnonymizationMapping as a JSON file."""

    DEFAULT_FILE_MODE = 0o600

    def __init__(
        self,
        storage_path: Path | str,
        file_mode: int = DEFAULT_FILE_MODE,
        create_dirs: bool = True,
    ) -> None:
        self._path = Path(storage_path)
        self._file_mode = file_mode
        self._create_dirs = create_dirs

    @property
    def path(self) -> Path:
        return self._path

    def save(self, mapping: AnonymizationMapping) -> None:
        """Atomically write *mapping* to the storage path.

        Raises:
            MappingStoreError: if the directory cannot be created or the
                file cannot be written or renamed.
        """
        document = PersistedMapping.from_mapping(mapping).model_dump(by_alias=True)
        content = json.dumps(document, indent=2, ensure_ascii=False)

        directory = self._path.parent
        try:
            if self._create_dirs:
                directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
            )
        except OSError as exc:
            raise MappingStoreError(f"Cannot prepare {self._path}: {exc}") from exc

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            self._restrict_permissions(tmp_path)
            os.replace(tmp_path, self._path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise MappingStoreError(f"Failed to save mapping to {self._path}: {exc}") from exc

        Log.info(f"Saved anonymization mapping ({mapping.total_entries()} entries) to {self._path}")

    def load(self) -> AnonymizationMapping:
        """Read the mapping file.

        Raises:
            MappingNotFoundError: if the file does not exist.
            MalformedMappingError: if the content is not a valid mapping document.
            MappingStoreError: if the file cannot be read.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise MappingNotFoundError(f"Mapping file not found: {self._path}") from exc
        except UnicodeDecodeError as exc:
            raise MalformedMappingError(f"Mapping file {self._path} is not valid UTF-8: {exc.reason}") from exc
        except OSError as exc:
            raise MappingStoreError(f"Cannot read mapping file {self._path}: {exc}") from exc

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MalformedMappingError(f"Mapping file {self._path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise MalformedMappingError(f"Mapping file {self._path} must contain a JSON object")

        try:
            persisted = PersistedMapping.model_validate(data)
        except ValidationError as exc:
            raise MalformedMappingError(
                f"Mapping file {self._path} has an invalid structure: {exc.error_count()} errors"
            ) from exc

        mapping = persisted.to_mapping()
        Log.info(f"Loaded anonymization mapping ({mapping.total_entries()} entries) from {self._path}")
        return mapping

    def exists(self) -> bool:
        return self._path.is_file()

    def get_size(self) -> int:
        """Size of the mapping file in bytes, 0 if it does not exist."""
        try:
            return self._path.stat().st_size
        except OSError:
            return 0

    def delete(self) -> None:
        """Remove the mapping file; a missing file is not an error."""
        try:
            self._path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise MappingStoreError(f"Failed to delete {self._path}: {exc}") from exc
        Log.info(f"Deleted anonymization mapping {self._path}")

    def _restrict_permissions(self, path: Path) -> None:
        try:
            os.chmod(path, self._file_mode)
        except (OSError, NotImplementedError) as exc:
            Log.debug(f"Could not set mode {oct(self._file_mode)} on {path}: {exc}")
