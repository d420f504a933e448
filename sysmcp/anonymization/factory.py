from sysmcp.anonymization.anonymizer import PiiAnonymizer
from sysmcp.anonymization.exceptions import MappingNotFoundError
from sysmcp.anonymization.models import AnonymizationMapping
from sysmcp.anonymization.store import MappingStore
from sysmcp.config.settings import Settings
from sysmcp.logging.logger import Log


class AnonymizerFactory:
    """Creates the process-wide anonymizer and its mapping store."""

    @classmethod
    def create_store(cls, settings: Settings) -> MappingStore:
        return MappingStore(
            settings.anonymization_mapping_path,
            file_mode=settings.anonymization_mapping_file_mode,
            create_dirs=settings.anonymization_create_dirs,
        )

    @classmethod
    def create(cls, settings: Settings, store: MappingStore | None = None) -> PiiAnonymizer:
        """Create an anonymizer seeded from the persisted mapping, if any.

        A missing mapping file means first run and starts empty; a malformed
        file propagates so that tokens are never silently reassigned.
        """
        store = store if store is not None else cls.create_store(settings)
        try:
            mapping = store.load()
        except MappingNotFoundError:
            Log.info(f"No anonymization mapping at {store.path}, starting empty")
            mapping = AnonymizationMapping()
        return PiiAnonymizer(mapping, local_hostname=settings.local_hostname or None)
