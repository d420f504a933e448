import json
from pathlib import Path
from unittest.mock import Mock

import pytest

from sysmcp.anonymization.anonymizer import PiiAnonymizer
from sysmcp.anonymization.exceptions import MalformedMappingError
from sysmcp.anonymization.factory import AnonymizerFactory
from sysmcp.anonymization.models import AnonymizationMapping
from sysmcp.anonymization.store import MappingStore
from sysmcp.config.settings import Settings


def _settings(tmp_path: Path, **overrides: object) -> Settings:
    values: dict[str, object] = {
        "anonymization_mapping_path": tmp_path / "mapping.json",
        "local_hostname": "DESKTOP-TEST01",
    }
    values.update(overrides)
    return Settings(**values)


class TestAnonymizerFactory:
    def test_returns_anonymizer_instance(self, tmp_path: Path) -> None:
        anonymizer = AnonymizerFactory.create(_settings(tmp_path))
        assert isinstance(anonymizer, PiiAnonymizer)

    def test_first_run_starts_with_empty_mapping(self, tmp_path: Path) -> None:
        anonymizer = AnonymizerFactory.create(_settings(tmp_path))
        assert anonymizer.mapping() == AnonymizationMapping()

    def test_seeds_mapping_from_store(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path)
        MappingStore(settings.anonymization_mapping_path).save(
            AnonymizationMapping(usernames={"DOMAIN\\user1": "ANON_USER_abc123"})
        )

        anonymizer = AnonymizerFactory.create(settings)

        assert anonymizer.redact_username("DOMAIN\\user1") == "ANON_USER_abc123"

    def test_malformed_mapping_propagates(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path)
        Path(settings.anonymization_mapping_path).write_text(json.dumps([1]), encoding="utf-8")

        with pytest.raises(MalformedMappingError):
            AnonymizerFactory.create(settings)

    def test_uses_given_store(self, tmp_path: Path) -> None:
        store = Mock(spec=MappingStore)
        store.load.return_value = AnonymizationMapping(emails={"a@b.com": "[ANON_EMAIL_ABCDEF]"})

        anonymizer = AnonymizerFactory.create(_settings(tmp_path), store=store)

        store.load.assert_called_once_with()
        assert anonymizer.mapping().emails == {"a@b.com": "[ANON_EMAIL_ABCDEF]"}

    def test_local_hostname_from_settings(self, tmp_path: Path) -> None:
        anonymizer = AnonymizerFactory.create(_settings(tmp_path, local_hostname="laptop-42.corp.local"))
        assert anonymizer.local_identity() == "LAPTOP-42"


class TestCreateStore:
    def test_store_follows_settings(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path, anonymization_mapping_path=tmp_path / "x" / "m.json")
        store = AnonymizerFactory.create_store(settings)
        assert isinstance(store, MappingStore)
        assert store.path == tmp_path / "x" / "m.json"
