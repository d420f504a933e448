from pathlib import Path

import pytest

from sysmcp.anonymization.store import MappingStore
from sysmcp.config.settings import Settings


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        anonymization_mapping_path=tmp_path / "data" / "anonymization-mapping.json",
        local_hostname="DESKTOP-TEST01",
    )


@pytest.fixture()
def store(settings: Settings) -> MappingStore:
    return MappingStore(settings.anonymization_mapping_path)
