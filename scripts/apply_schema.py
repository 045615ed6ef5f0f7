#!/usr/bin/env python
"""Apply a JSON file of admin commands.

Usage:
    python -m scripts.apply_schema --schema scripts/beansack_schema.json --data-dir data

The file holds a list of shell-style command documents (``createIndexes``,
``dropIndexes``, ``listIndexes``, ``count``). Index definitions are written
to the catalog under the data directory, where the API picks them up on
startup.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from docindex.admin.service import build_admin_service
from docindex.config import Settings, StorageSettings
from docindex.exceptions import DocIndexError, ValidationError
from docindex.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def load_commands(path: Path) -> list[dict[str, Any]]:
    """Read the command list from a JSON file.

    Raises:
        ValidationError: If the file is not a JSON list of objects.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(
            f"Invalid JSON in schema file: {e}",
            details={"path": str(path)},
        ) from e

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not all(isinstance(c, dict) for c in data):
        raise ValidationError(
            "Schema file must hold a command object or a list of them",
            details={"path": str(path)},
        )
    return data


def apply_schema(
    schema_path: Path,
    data_dir: Path | None = None,
    database: str = "beansack",
    stop_on_error: bool = True,
) -> bool:
    """Run every command in the file and print each result.

    Args:
        schema_path: Path to the command file.
        data_dir: Catalog directory; None applies in memory only.
        database: Database name.
        stop_on_error: Abort at the first failing command.

    Returns:
        True if every command succeeded, False otherwise.
    """
    setup_logging(level="INFO")

    settings = Settings(storage=StorageSettings(data_dir=data_dir, database=database))
    service = build_admin_service(settings)

    logger.info(f"Loading commands from {schema_path}")
    commands = load_commands(schema_path)

    failures = 0
    for command in commands:
        try:
            result = service.run_command(command)
        except DocIndexError as e:
            failures += 1
            print(json.dumps({"ok": 0, "command": command, **e.to_dict()}, indent=2))
            if stop_on_error:
                break
            continue
        print(json.dumps(result, indent=2, default=str))

    if failures:
        logger.error(f"{failures} of {len(commands)} commands failed")
    else:
        logger.info(f"Applied {len(commands)} commands")
    return failures == 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Apply a JSON file of index admin commands",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--schema",
        type=Path,
        required=True,
        help="Path to the command JSON file",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory for the index catalog (in memory when omitted)",
    )
    parser.add_argument(
        "--database",
        default="beansack",
        help="Database name",
    )
    parser.add_argument(
        "--keep-going",
        action="store_true",
        help="Continue after a failing command",
    )

    args = parser.parse_args()

    try:
        passed = apply_schema(
            schema_path=args.schema,
            data_dir=args.data_dir,
            database=args.database,
            stop_on_error=not args.keep_going,
        )
    except DocIndexError as e:
        logger.error(f"Schema not applied: {e.message}", extra={"details": e.details})
        sys.exit(2)

    sys.exit(0 if passed else 1)


if __name__ == "__main__":
    main()
