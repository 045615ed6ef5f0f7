"""Parsing of database-shell style admin commands.

Index specs follow the shell's ``createIndexes`` shape. A vector index:

    {
        "name": "wholebeans_vec_search",
        "key": {"embeddings": "cosmosSearch"},
        "cosmosSearchOptions": {
            "kind": "vector-ivf",
            "numLists": 10,
            "similarity": "COS",
            "dimensions": 512
        }
    }

and a scalar index: ``{"key": {"url": 1, "updated": 1}}`` with an optional
``name``.
"""

from collections.abc import Mapping
from typing import Any

from docindex.exceptions import ErrorCode, ValidationError
from docindex.indexes.models import (
    ScalarIndexDefinition,
    VectorIndexDefinition,
    scalar_definition,
    vector_definition,
)

VECTOR_KEY_MARKER = "cosmosSearch"
SUPPORTED_VECTOR_KINDS = ("vector-ivf",)
COMMANDS = ("createIndexes", "dropIndexes", "listIndexes", "count", "drop")


def parse_index_spec(
    spec: Mapping[str, Any],
) -> tuple[str, ScalarIndexDefinition | VectorIndexDefinition]:
    """Turn one ``createIndexes`` entry into ``(name, definition)``.

    Raises:
        ValidationError: If the spec is malformed.
    """
    key = spec.get("key")
    if not isinstance(key, Mapping) or not key:
        raise ValidationError(
            "Index spec requires a non-empty 'key' mapping",
            details={"spec": dict(spec)},
        )

    vector_fields = [field for field, kind in key.items() if kind == VECTOR_KEY_MARKER]
    if vector_fields:
        if len(key) != 1:
            raise ValidationError(
                "A vector index must have exactly one key",
                details={"key": dict(key)},
            )
        options = spec.get("cosmosSearchOptions")
        if not isinstance(options, Mapping):
            raise ValidationError(
                "Vector index spec requires 'cosmosSearchOptions'",
                details={"spec": dict(spec)},
            )
        kind = options.get("kind", SUPPORTED_VECTOR_KINDS[0])
        if kind not in SUPPORTED_VECTOR_KINDS:
            raise ValidationError(
                f"Unsupported vector index kind: {kind}",
                details={"kind": kind, "supported": list(SUPPORTED_VECTOR_KINDS)},
            )
        if "dimensions" not in options:
            raise ValidationError(
                "Vector index spec requires 'dimensions'",
                details={"options": dict(options)},
            )
        definition: ScalarIndexDefinition | VectorIndexDefinition = vector_definition(
            field=vector_fields[0],
            dimensions=options["dimensions"],
            similarity=options.get("similarity", "COS"),
            num_lists=options.get("numLists", 1),
        )
        name = spec.get("name") or f"{vector_fields[0]}_{VECTOR_KEY_MARKER}"
        return str(name), definition

    definition = scalar_definition(list(key.items()))
    name = spec.get("name") or definition.default_name()
    return str(name), definition


def command_name(command: Mapping[str, Any]) -> str:
    """Identify which supported command a document holds.

    Raises:
        ValidationError: If none or several command keys are present.
    """
    if not isinstance(command, Mapping):
        raise ValidationError(
            "Command must be a mapping",
            code=ErrorCode.UNKNOWN_COMMAND,
        )
    present = [name for name in COMMANDS if name in command]
    if len(present) != 1:
        raise ValidationError(
            f"Unknown command: {sorted(command)}",
            code=ErrorCode.UNKNOWN_COMMAND,
            details={"keys": sorted(command), "supported": list(COMMANDS)},
        )
    return present[0]


def require_collection(command: Mapping[str, Any], name: str) -> str:
    """Read the collection argument of a command."""
    collection = command.get(name)
    if not isinstance(collection, str) or not collection:
        raise ValidationError(
            f"'{name}' requires a collection name",
            details={"command": name},
        )
    return collection
