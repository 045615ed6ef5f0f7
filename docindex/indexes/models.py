"""Index definition models.

Definitions are immutable values: two definitions are the same index when
they compare equal, which is what makes re-creation idempotent.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal, cast

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from docindex.exceptions import ValidationError


class IndexKind(str, Enum):
    """Kinds of index a collection can hold."""

    SCALAR = "scalar"
    VECTOR = "vector"


class Similarity(str, Enum):
    """Vector similarity metrics (document-database spelling)."""

    COS = "COS"
    IP = "IP"
    L2 = "L2"


_SIMILARITY_ALIASES = {
    "cos": Similarity.COS,
    "cosine": Similarity.COS,
    "ip": Similarity.IP,
    "dot": Similarity.IP,
    "dotproduct": Similarity.IP,
    "inner_product": Similarity.IP,
    "l2": Similarity.L2,
    "euclidean": Similarity.L2,
}


def parse_similarity(value: Any) -> Similarity:
    """Parse a metric name, accepting common aliases in any case.

    Raises:
        ValidationError: If the metric is not recognised.
    """
    if isinstance(value, Similarity):
        return value
    metric = _SIMILARITY_ALIASES.get(str(value).strip().lower())
    if metric is None:
        raise ValidationError(
            f"Unrecognized similarity metric: {value}",
            details={"similarity": str(value), "allowed": [s.value for s in Similarity]},
        )
    return metric


class IndexKey(BaseModel):
    """One field of a scalar index with its sort direction."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(min_length=1, description="Indexed field path")
    direction: Literal[1, -1] = Field(default=1, description="1 ascending, -1 descending")


class ScalarIndexDefinition(BaseModel):
    """Ordered compound index over scalar fields."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["scalar"] = "scalar"
    keys: tuple[IndexKey, ...] = Field(min_length=1, description="Index keys in order")

    @property
    def paths(self) -> list[str]:
        return [key.field for key in self.keys]

    def default_name(self) -> str:
        """Name in the ``url_1_updated_1`` convention."""
        return "_".join(f"{key.field}_{key.direction}" for key in self.keys)


class VectorIndexDefinition(BaseModel):
    """Approximate nearest neighbour (IVF) index over one embedding field.

    Attributes:
        field: Embedding field path.
        similarity: Similarity metric.
        num_lists: Number of IVF partitions.
        dimensions: Required vector length.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["vector"] = "vector"
    field: str = Field(min_length=1, description="Embedding field path")
    similarity: Similarity = Field(default=Similarity.COS, description="Similarity metric")
    num_lists: int = Field(default=1, ge=1, description="IVF partition count")
    dimensions: int = Field(gt=0, description="Vector dimensionality")

    @field_validator("similarity", mode="before")
    @classmethod
    def _parse_similarity(cls, value: Any) -> Similarity:
        try:
            return parse_similarity(value)
        except ValidationError as e:
            raise ValueError(e.message) from e

    @property
    def paths(self) -> list[str]:
        return [self.field]


IndexDefinition = Annotated[
    ScalarIndexDefinition | VectorIndexDefinition,
    Field(discriminator="kind"),
]

_definition_adapter: TypeAdapter[Any] = TypeAdapter(IndexDefinition)


def _to_validation_error(
    error: PydanticValidationError, payload: dict[str, Any]
) -> ValidationError:
    problems = [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in error.errors()
    ]
    return ValidationError(
        f"Invalid index definition: {problems[0]['field']}: {problems[0]['message']}",
        details={"definition": payload, "errors": problems},
    )


def parse_definition(payload: dict[str, Any]) -> ScalarIndexDefinition | VectorIndexDefinition:
    """Validate a raw definition mapping (as stored in the catalog).

    Raises:
        ValidationError: If the definition is malformed.
    """
    try:
        return _definition_adapter.validate_python(payload)
    except PydanticValidationError as e:
        raise _to_validation_error(e, payload) from e


def vector_definition(
    field: str,
    dimensions: int,
    similarity: str | Similarity = Similarity.COS,
    num_lists: int = 1,
) -> VectorIndexDefinition:
    """Build a vector index definition, raising ValidationError on bad input."""
    payload = {
        "kind": IndexKind.VECTOR.value,
        "field": field,
        "dimensions": dimensions,
        "similarity": similarity,
        "num_lists": num_lists,
    }
    return cast(VectorIndexDefinition, parse_definition(payload))


def scalar_definition(
    keys: dict[str, int] | list[tuple[str, int]],
) -> ScalarIndexDefinition:
    """Build a scalar index definition from ``{field: direction}`` pairs."""
    pairs = list(keys.items()) if isinstance(keys, dict) else list(keys)
    payload = {
        "kind": IndexKind.SCALAR.value,
        "keys": [{"field": f, "direction": d} for f, d in pairs],
    }
    return cast(ScalarIndexDefinition, parse_definition(payload))


class IndexStats(BaseModel):
    """Point-in-time statistics of a built index."""

    entries: int = Field(default=0, description="Indexed documents")
    skipped: int = Field(default=0, description="Documents rejected during the last build")
    trained: bool = Field(default=False, description="Whether IVF centroids are trained")
    partitions: int = Field(default=0, description="Populated IVF partitions")
    multikey: bool = Field(default=False, description="Scalar index covers array values")


class IndexInfo(BaseModel):
    """Description of an index returned by the admin surface."""

    collection: str = Field(description="Owning collection")
    name: str = Field(description="Index name")
    definition: ScalarIndexDefinition | VectorIndexDefinition = Field(
        discriminator="kind",
        description="Index definition",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the index was created",
    )
    stats: IndexStats = Field(default_factory=IndexStats)
