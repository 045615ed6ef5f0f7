"""API routes for collections, indexes, documents and search.

Handlers are plain functions so FastAPI runs them in its threadpool; index
builds and searches are CPU-bound and must not block the event loop.
"""

from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from docindex.admin.service import AdminService, build_admin_service
from docindex.documents.models import Document
from docindex.indexes.models import IndexInfo
from docindex.logging_config import get_logger
from docindex.search.models import SearchHit

logger = get_logger(__name__)


# Create router
router = APIRouter(prefix="/api/v1", tags=["Index"])


@lru_cache
def get_admin_service() -> AdminService:
    """Process-wide admin service, built from settings on first use."""
    return build_admin_service()


class CountResponse(BaseModel):
    """Document count of a collection."""

    collection: str = Field(description="Collection name")
    count: int = Field(description="Matching documents")


class CountRequest(BaseModel):
    """Request body for a filtered count."""

    filter: dict[str, Any] = Field(
        default_factory=dict,
        description="Scalar filter document",
    )


class VectorIndexRequest(BaseModel):
    """Request body for creating a vector index."""

    name: str = Field(description="Index name")
    field: str = Field(description="Embedding field")
    dimensions: int = Field(gt=0, description="Vector length")
    similarity: str = Field(default="COS", description="COS, IP or L2")
    num_lists: int = Field(default=1, ge=1, description="IVF partitions")


class ScalarIndexRequest(BaseModel):
    """Request body for creating a scalar index."""

    keys: list[tuple[str, int]] = Field(
        min_length=1,
        description="Ordered (field, direction) pairs",
    )
    name: str | None = Field(default=None, description="Index name")


class RebuildRequest(BaseModel):
    """Request body for rebuilding an index."""

    num_lists: int | None = Field(default=None, ge=1, description="New IVF partitions")


class InsertRequest(BaseModel):
    """Request body for inserting documents."""

    documents: list[dict[str, Any]] = Field(description="Records with an _id or id")
    skip_existing: bool = Field(
        default=True,
        description="Skip documents whose id already exists",
    )


class InsertResponse(BaseModel):
    """Result of an insert."""

    inserted: int = Field(description="Documents inserted")
    ids: list[str] = Field(description="Ids of inserted documents")


class DeleteRequest(BaseModel):
    """Request body for deleting documents."""

    filter: dict[str, Any] = Field(
        default_factory=dict,
        description="Scalar filter; empty deletes everything",
    )


class DeleteResponse(BaseModel):
    """Result of a delete."""

    deleted: int = Field(description="Documents deleted")


class SearchRequest(BaseModel):
    """Request body for a vector search."""

    field: str = Field(description="Embedding field with a vector index")
    vector: list[Any] = Field(min_length=1, description="Query embedding (numbers only)")
    k: int | None = Field(default=None, ge=1, description="Maximum hits")
    similarity: str | None = Field(default=None, description="Expected similarity metric")
    filter: dict[str, Any] | None = Field(default=None, description="Scalar pre-filter")
    min_score: float | None = Field(default=None, description="Minimum score")
    nprobe: int | None = Field(default=None, ge=1, description="IVF partitions to scan")
    fields: list[str] | None = Field(default=None, description="Fields to return")


class SearchResponse(BaseModel):
    """Ranked vector search hits."""

    collection: str = Field(description="Collection name")
    hits: list[SearchHit] = Field(description="Hits by descending score")


@router.get("/collections")
def list_collections(
    service: AdminService = Depends(get_admin_service),
) -> dict[str, list[str]]:
    """List collection names."""
    return {"collections": service.database.list_collections()}


@router.delete("/collections/{collection}", status_code=status.HTTP_204_NO_CONTENT)
def drop_collection(
    collection: str,
    service: AdminService = Depends(get_admin_service),
) -> None:
    service.drop_collection(collection)


@router.get("/collections/{collection}/count", response_model=CountResponse)
def count_documents(
    collection: str,
    service: AdminService = Depends(get_admin_service),
) -> CountResponse:
    """Count all documents of a collection (0 if it does not exist)."""
    return CountResponse(collection=collection, count=service.count_documents(collection))


@router.post("/collections/{collection}/count", response_model=CountResponse)
def count_matching(
    collection: str,
    request: CountRequest,
    service: AdminService = Depends(get_admin_service),
) -> CountResponse:
    """Count documents matching a filter."""
    return CountResponse(
        collection=collection,
        count=service.count_documents(collection, request.filter),
    )


@router.get("/collections/{collection}/indexes", response_model=list[IndexInfo])
def list_indexes(
    collection: str,
    service: AdminService = Depends(get_admin_service),
) -> list[IndexInfo]:
    return service.list_indexes(collection)


@router.get("/collections/{collection}/indexes/{name}", response_model=IndexInfo)
def get_index(
    collection: str,
    name: str,
    service: AdminService = Depends(get_admin_service),
) -> IndexInfo:
    return service.get_index(collection, name)


@router.post(
    "/collections/{collection}/indexes/vector",
    response_model=IndexInfo,
    status_code=status.HTTP_201_CREATED,
)
def create_vector_index(
    collection: str,
    request: VectorIndexRequest,
    service: AdminService = Depends(get_admin_service),
) -> IndexInfo:
    """Create a vector index; repeating an identical request is a no-op."""
    return service.create_vector_index(
        collection,
        name=request.name,
        field=request.field,
        dimensions=request.dimensions,
        similarity=request.similarity,
        num_lists=request.num_lists,
    )


@router.post(
    "/collections/{collection}/indexes/scalar",
    response_model=IndexInfo,
    status_code=status.HTTP_201_CREATED,
)
def create_scalar_index(
    collection: str,
    request: ScalarIndexRequest,
    service: AdminService = Depends(get_admin_service),
) -> IndexInfo:
    return service.create_scalar_index(collection, request.keys, name=request.name)


@router.post("/collections/{collection}/indexes/{name}/rebuild", response_model=IndexInfo)
def rebuild_index(
    collection: str,
    name: str,
    request: RebuildRequest | None = None,
    service: AdminService = Depends(get_admin_service),
) -> IndexInfo:
    num_lists = request.num_lists if request is not None else None
    return service.rebuild_index(collection, name, num_lists=num_lists)


@router.delete(
    "/collections/{collection}/indexes/{name}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def drop_index(
    collection: str,
    name: str,
    service: AdminService = Depends(get_admin_service),
) -> None:
    service.drop_index(collection, name)


@router.post(
    "/collections/{collection}/documents",
    response_model=InsertResponse,
    status_code=status.HTTP_201_CREATED,
)
def insert_documents(
    collection: str,
    request: InsertRequest,
    service: AdminService = Depends(get_admin_service),
) -> InsertResponse:
    """Insert documents, skipping existing ids unless told otherwise."""
    documents = [Document.from_mapping(raw) for raw in request.documents]
    inserted = service.insert_documents(
        collection, documents, skip_existing=request.skip_existing
    )
    return InsertResponse(inserted=len(inserted), ids=[doc.id for doc in inserted])


@router.put("/collections/{collection}/documents/{doc_id}")
def upsert_document(
    collection: str,
    doc_id: str,
    data: dict[str, Any],
    service: AdminService = Depends(get_admin_service),
) -> dict[str, Any]:
    """Insert or replace one document."""
    data = {k: v for k, v in data.items() if k not in ("_id", "id")}
    document = service.upsert_document(collection, Document(id=doc_id, data=data))
    return document.to_record()


@router.get("/collections/{collection}/documents/{doc_id}")
def get_document(
    collection: str,
    doc_id: str,
    service: AdminService = Depends(get_admin_service),
) -> dict[str, Any]:
    return service.get_document(collection, doc_id).to_record()


@router.post("/collections/{collection}/documents/delete", response_model=DeleteResponse)
def delete_documents(
    collection: str,
    request: DeleteRequest,
    service: AdminService = Depends(get_admin_service),
) -> DeleteResponse:
    return DeleteResponse(deleted=service.delete_documents(collection, request.filter))


@router.post("/collections/{collection}/search", response_model=SearchResponse)
def search(
    collection: str,
    request: SearchRequest,
    service: AdminService = Depends(get_admin_service),
) -> SearchResponse:
    """Run a top-k vector search with an optional scalar pre-filter."""
    hits = service.search(
        collection,
        request.field,
        request.vector,
        k=request.k,
        similarity=request.similarity,
        scalar_filter=request.filter,
        min_score=request.min_score,
        nprobe=request.nprobe,
        fields=request.fields,
    )
    return SearchResponse(collection=collection, hits=hits)


@router.post("/commands")
def run_command(
    command: dict[str, Any],
    service: AdminService = Depends(get_admin_service),
) -> dict[str, Any]:
    """Run one database-shell style command document."""
    return service.run_command(command)
