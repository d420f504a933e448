import json
from pathlib import Path

import pytest

from sysmcp.main import main


@pytest.fixture()
def mapping_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "state" / "mapping.json"
    monkeypatch.setenv("ANONYMIZATION_MAPPING_PATH", str(path))
    monkeypatch.setenv("LOCAL_HOSTNAME", "DESKTOP-TEST01")
    return path


class TestMain:
    def test_redacts_events_and_persists_mapping(
        self, tmp_path: Path, mapping_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        source = tmp_path / "events.json"
        source.write_text(
            json.dumps([{"id": 1, "userId": "CONTOSO\\jsmith", "message": "from 10.1.2.3"}]),
            encoding="utf-8",
        )

        code = main(["eventlog", str(source)])

        assert code == 0
        [event] = json.loads(capsys.readouterr().out)
        assert event["id"] == 1
        assert event["userId"].startswith("[ANON_USER_")
        assert "10.1.2.3" not in event["message"]
        saved = json.loads(mapping_env.read_text(encoding="utf-8"))
        assert saved["usernames"] == {"CONTOSO\\jsmith": event["userId"]}

    def test_redacts_file_records(
        self, tmp_path: Path, mapping_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        source = tmp_path / "files.json"
        source.write_text(json.dumps([{"path": "C:\\Users\\alice\\a.txt"}]), encoding="utf-8")

        assert main(["filesearch", str(source)]) == 0

        [entry] = json.loads(capsys.readouterr().out)
        assert entry["path"].startswith("C:\\Users\\[ANON_USER_")

    def test_rejects_non_array_input(self, tmp_path: Path, mapping_env: Path) -> None:
        source = tmp_path / "bad.json"
        source.write_text(json.dumps({"not": "a list"}), encoding="utf-8")
        assert main(["eventlog", str(source)]) == 2

    def test_missing_input_file(self, tmp_path: Path, mapping_env: Path) -> None:
        assert main(["eventlog", str(tmp_path / "absent.json")]) == 2

    def test_malformed_mapping_aborts(self, tmp_path: Path, mapping_env: Path) -> None:
        mapping_env.parent.mkdir(parents=True)
        mapping_env.write_text("{broken", encoding="utf-8")
        source = tmp_path / "events.json"
        source.write_text("[]", encoding="utf-8")
        assert main(["eventlog", str(source)]) == 1

    def test_undecodable_mapping_aborts(self, tmp_path: Path, mapping_env: Path) -> None:
        mapping_env.parent.mkdir(parents=True)
        mapping_env.write_bytes(b"\xff\xfe{bad")
        source = tmp_path / "events.json"
        source.write_text("[]", encoding="utf-8")
        assert main(["eventlog", str(source)]) == 1
