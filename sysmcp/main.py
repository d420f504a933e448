import argparse
import json
import sys
from pathlib import Path
from typing import Any

from sysmcp.anonymization.exceptions import MappingStoreError
from sysmcp.config.settings import Settings
from sysmcp.logging.logger import Log
from sysmcp.redaction.service import build_redaction_service


def _read_records(source: str | None) -> list[dict[str, Any]]:
    raw = Path(source).read_text(encoding="utf-8") if source else sys.stdin.read()
    data = json.loads(raw)
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError("input must be a JSON array of objects")
    return data


def main(argv: list[str] | None = None) -> int:
    """Entry point: load settings -> restore mapping -> redact records -> persist mapping."""
    parser = argparse.ArgumentParser(
        prog="sysmcp-redact",
        description="Redact PII from event-log or file-search records (JSON array).",
    )
    parser.add_argument("kind", choices=("eventlog", "filesearch"))
    parser.add_argument("input", nargs="?", help="JSON file; reads stdin when omitted")
    args = parser.parse_args(argv)

    settings = Settings()
    Log.configure(settings.log_level)

    try:
        service = build_redaction_service(settings)
    except MappingStoreError as exc:
        Log.error(f"Cannot restore anonymization mapping: {exc}")
        return 1

    try:
        records = _read_records(args.input)
    except (OSError, ValueError) as exc:
        Log.error(f"Invalid input: {exc}")
        return 2

    if args.kind == "eventlog":
        redacted = service.redact_events(records)
    else:
        redacted = service.redact_files(records)
    json.dump(redacted, sys.stdout, indent=2, ensure_ascii=False, default=str)
    sys.stdout.write("\n")
    Log.info(f"Redacted {len(redacted)} {args.kind} records")

    try:
        service.persist()
    except MappingStoreError as exc:
        Log.error(f"Failed to persist anonymization mapping: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
