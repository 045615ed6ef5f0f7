"""Scalar filter documents.

Filters use the document-database shape: ``{"kind": "news"}`` for
equality, ``{"updated": {"$gte": 1700000000}}`` for ranges, and ``$and`` /
``$or`` / ``$not`` to combine them. Field names may be dotted paths into
nested mappings.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from docindex.exceptions import ValidationError

Predicate = Callable[[Mapping[str, Any]], bool]


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

_COMPARISONS = ("$gt", "$gte", "$lt", "$lte")
_FIELD_OPERATORS = frozenset(
    ("$eq", "$ne", "$in", "$nin", "$exists", "$not", *_COMPARISONS)
)


def get_path(fields: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path, returning MISSING when any step is absent."""
    current: Any = fields
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return MISSING
        current = current[part]
    return current


def type_rank(value: Any) -> int:
    """Bracket values so that mixed types order deterministically."""
    if value is None or value is MISSING:
        return 0
    if isinstance(value, bool):
        return 5
    if isinstance(value, int | float):
        return 1
    if isinstance(value, str):
        return 2
    if isinstance(value, Mapping):
        return 3
    if isinstance(value, list | tuple):
        return 4
    return 6


def sort_key(value: Any) -> tuple[Any, ...]:
    """Total ordering key: null < numbers < strings < objects < arrays < bools."""
    rank = type_rank(value)
    if rank == 0:
        return (0,)
    if rank in (1, 2, 5):
        return (rank, value)
    if rank == 3:
        return (3, tuple((k, sort_key(v)) for k, v in sorted(value.items())))
    if rank == 4:
        return (4, tuple(sort_key(v) for v in value))
    return (6, repr(value))


def _candidates(value: Any) -> list[Any]:
    # Arrays match when the array itself or any element matches.
    if isinstance(value, list | tuple):
        return [value, *value]
    return [value]


def _equals(value: Any, target: Any) -> bool:
    if value is MISSING:
        return target is None
    return any(
        type_rank(v) == type_rank(target) and v == target for v in _candidates(value)
    )


def _compare(value: Any, op: str, target: Any) -> bool:
    if value is MISSING:
        return False
    for v in _candidates(value):
        if type_rank(v) != type_rank(target) or type_rank(v) not in (1, 2, 5):
            continue
        if op == "$gt" and v > target:
            return True
        if op == "$gte" and v >= target:
            return True
        if op == "$lt" and v < target:
            return True
        if op == "$lte" and v <= target:
            return True
    return False


def _value_check(path: str, condition: Any) -> Callable[[Any], bool]:
    """Compile a field condition into a check on the resolved value."""
    if not (
        isinstance(condition, Mapping)
        and condition
        and all(str(k).startswith("$") for k in condition)
    ):
        return lambda v: _equals(v, condition)

    checks: list[Callable[[Any], bool]] = []
    for op, target in condition.items():
        if op not in _FIELD_OPERATORS:
            raise ValidationError(
                f"Unknown filter operator: {op}",
                details={"field": path, "operator": op},
            )
        if op == "$eq":
            checks.append(lambda v, t=target: _equals(v, t))
        elif op == "$ne":
            checks.append(lambda v, t=target: not _equals(v, t))
        elif op in _COMPARISONS:
            checks.append(lambda v, o=op, t=target: _compare(v, o, t))
        elif op in ("$in", "$nin"):
            if not isinstance(target, list | tuple):
                raise ValidationError(
                    f"{op} requires a list",
                    details={"field": path, "operator": op},
                )
            if op == "$in":
                checks.append(lambda v, t=target: any(_equals(v, x) for x in t))
            else:
                checks.append(lambda v, t=target: not any(_equals(v, x) for x in t))
        elif op == "$exists":
            checks.append(lambda v, t=bool(target): (v is not MISSING) is t)
        else:
            inner = _value_check(path, target)
            checks.append(lambda v, c=inner: not c(v))

    return lambda v: all(check(v) for check in checks)


def _field_predicate(path: str, condition: Any) -> Predicate:
    check = _value_check(path, condition)
    return lambda fields: check(get_path(fields, path))


def compile_filter(spec: Mapping[str, Any] | None) -> Predicate:
    """Validate a filter document and compile it to a predicate.

    Raises:
        ValidationError: If the filter is malformed or uses unknown operators.
    """
    if not spec:
        return lambda fields: True
    if not isinstance(spec, Mapping):
        raise ValidationError(
            "Filter must be a mapping",
            details={"filter": repr(spec)},
        )

    predicates: list[Predicate] = []
    for key, condition in spec.items():
        if key in ("$and", "$or"):
            if not isinstance(condition, list | tuple) or not condition:
                raise ValidationError(
                    f"{key} requires a non-empty list",
                    details={"operator": key},
                )
            parts = [compile_filter(c) for c in condition]
            if key == "$and":
                predicates.append(lambda f, ps=parts: all(p(f) for p in ps))
            else:
                predicates.append(lambda f, ps=parts: any(p(f) for p in ps))
        elif key == "$not":
            inner = compile_filter(condition)
            predicates.append(lambda f, p=inner: not p(f))
        elif str(key).startswith("$"):
            raise ValidationError(
                f"Unknown filter operator: {key}",
                details={"operator": key},
            )
        else:
            predicates.append(_field_predicate(key, condition))

    return lambda fields: all(p(fields) for p in predicates)


def matches(fields: Mapping[str, Any], spec: Mapping[str, Any] | None) -> bool:
    """Check a single document's fields against a filter."""
    return compile_filter(spec)(fields)


@dataclass(frozen=True)
class KeyRange:
    """Bounds on one field extracted from a filter, for index lookups."""

    low: Any = MISSING
    low_inclusive: bool = True
    high: Any = MISSING
    high_inclusive: bool = True

    @property
    def is_point(self) -> bool:
        return (
            self.low is not MISSING
            and self.low_inclusive
            and self.high_inclusive
            and sort_key(self.low) == sort_key(self.high)
        )


def field_range(spec: Mapping[str, Any] | None, path: str) -> KeyRange | None:
    """Extract top-level bounds for ``path`` from a filter.

    Only plain equality and ``$eq``/``$gt``/``$gte``/``$lt``/``$lte`` on
    scalar values narrow the range; anything else returns None and the
    caller falls back to a scan.
    """
    if not spec or path not in spec:
        return None
    condition = spec[path]
    if not isinstance(condition, Mapping):
        if type_rank(condition) in (1, 2, 5):
            return KeyRange(low=condition, high=condition)
        return None

    low: Any = MISSING
    high: Any = MISSING
    low_inc = high_inc = True
    for op, target in condition.items():
        if type_rank(target) not in (1, 2, 5):
            return None
        if op == "$eq":
            low = high = target
        elif op in ("$gt", "$gte"):
            low, low_inc = target, op == "$gte"
        elif op in ("$lt", "$lte"):
            high, high_inc = target, op == "$lte"
        else:
            return None
    return KeyRange(low=low, low_inclusive=low_inc, high=high, high_inclusive=high_inc)
