"""Document data models."""

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from docindex.exceptions import ValidationError
from docindex.filters import MISSING, get_path


class Document(BaseModel):
    """A stored record.

    Attributes:
        id: Unique identifier within the collection.
        data: Scalar fields and embedding vectors, addressed by dotted path.
    """

    id: str = Field(min_length=1, description="Unique document identifier")
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Scalar fields and embedding vectors",
    )

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "Document":
        """Build a document from a flat record carrying ``_id`` or ``id``."""
        data = dict(raw)
        doc_id = data.pop("_id", None)
        if doc_id is None:
            doc_id = data.pop("id", None)
        if doc_id is None or doc_id == "":
            raise ValidationError(
                "Document requires an _id or id",
                details={"fields": sorted(data)},
            )
        return cls(id=str(doc_id), data=data)

    def get(self, path: str, default: Any = None) -> Any:
        """Resolve a dotted field path."""
        value = get_path(self.data, path)
        return default if value is MISSING else value

    def project(self, paths: Iterable[str] | None) -> dict[str, Any]:
        """Return the listed fields (all fields when ``paths`` is None)."""
        if paths is None:
            return dict(self.data)
        projected: dict[str, Any] = {}
        for path in paths:
            value = get_path(self.data, path)
            if value is not MISSING:
                projected[path] = value
        return projected

    def to_record(self) -> dict[str, Any]:
        """Flatten back into the ``_id`` record shape."""
        return {"_id": self.id, **self.data}
