from collections.abc import Iterable, Mapping
from typing import Any

from sysmcp.anonymization.anonymizer import PiiAnonymizer
from sysmcp.anonymization.factory import AnonymizerFactory
from sysmcp.anonymization.store import MappingStore
from sysmcp.config.settings import Settings
from sysmcp.filesearch.models import FileSearchEntry
from sysmcp.filesearch.path_anonymizer import PathAnonymizer
from sysmcp.logging.logger import Log


class RedactionService:
    """Applies anonymization to outbound records for each data provider.

    Holds the single anonymizer of the process, the path anonymizer built on
    it, and the store used to persist the mapping between restarts.
    """

    def __init__(
        self,
        anonymizer: PiiAnonymizer,
        path_anonymizer: PathAnonymizer,
        store: MappingStore,
        eventlog_enabled: bool = True,
        filesearch_enabled: bool = True,
    ) -> None:
        self._anonymizer = anonymizer
        self._path_anonymizer = path_anonymizer
        self._store = store
        self._eventlog_enabled = eventlog_enabled
        self._filesearch_enabled = filesearch_enabled

    @property
    def anonymizer(self) -> PiiAnonymizer:
        return self._anonymizer

    def redact_events(self, records: Iterable[Mapping[str, Any]]) -> list[Any]:
        """Redact event-log records, or copy them through when disabled."""
        if not self._eventlog_enabled:
            return [dict(record) for record in records]
        return self._anonymizer.redact_many(records)

    def redact_files(
        self, records: Iterable[FileSearchEntry | Mapping[str, Any]]
    ) -> list[FileSearchEntry | dict[str, Any]]:
        """Redact file search entries, or pass them through when disabled."""
        if not self._filesearch_enabled:
            return [r if isinstance(r, FileSearchEntry) else dict(r) for r in records]
        return self._path_anonymizer.anonymize_entries(records)

    def persist(self) -> None:
        """Save the current mapping.

        Raises:
            MappingStoreError: when the mapping cannot be written.
        """
        self._store.save(self._anonymizer.mapping())
        Log.debug(f"Persisted mapping ({self._store.get_size()} bytes)")


def build_redaction_service(settings: Settings) -> RedactionService:
    """Build a RedactionService with its mapping restored from disk."""
    store = AnonymizerFactory.create_store(settings)
    anonymizer = AnonymizerFactory.create(settings, store=store)
    return RedactionService(
        anonymizer=anonymizer,
        path_anonymizer=PathAnonymizer(anonymizer),
        store=store,
        eventlog_enabled=settings.eventlog_anonymization_enabled,
        filesearch_enabled=settings.filesearch_anonymization_enabled,
    )
