"""Tests for application exceptions."""

from docindex.exceptions import (
    CatalogError,
    ConfigurationError,
    ConflictError,
    DimensionMismatchError,
    DocIndexError,
    ErrorCode,
    IndexNotFoundError,
    NotFoundError,
    ValidationError,
)


class TestErrorCode:
    """Tests for error codes."""

    def test_error_code_format(self) -> None:
        """Error codes follow IDX-XXXX format."""
        for code in ErrorCode:
            assert code.value.startswith("IDX-")
            assert len(code.value) == 8

    def test_error_code_uniqueness(self) -> None:
        """All error codes are unique."""
        codes = [code.value for code in ErrorCode]
        assert len(codes) == len(set(codes))


class TestDocIndexError:
    """Tests for base exception."""

    def test_basic_exception(self) -> None:
        """Base exception stores message and code."""
        error = DocIndexError("Something went wrong")
        assert error.message == "Something went wrong"
        assert error.code == ErrorCode.INTERNAL_ERROR
        assert error.details == {}

    def test_to_dict(self) -> None:
        """Exception converts to API response dict."""
        error = DocIndexError(
            "Something went wrong",
            details={"trace_id": "abc123"},
        )

        assert error.to_dict() == {
            "error": {
                "code": "IDX-1000",
                "message": "Something went wrong",
                "details": {"trace_id": "abc123"},
            }
        }

    def test_str_representation(self) -> None:
        """Exception string is the message."""
        assert str(DocIndexError("Test error")) == "Test error"


class TestSubclasses:
    """Tests for the default codes of each exception."""

    def test_configuration_error(self) -> None:
        error = ConfigurationError("Missing env var")
        assert error.code == ErrorCode.CONFIGURATION_ERROR
        assert isinstance(error, DocIndexError)

    def test_validation_error_custom_code(self) -> None:
        """ValidationError can carry a narrower code."""
        assert ValidationError("bad").code == ErrorCode.VALIDATION_ERROR
        error = ValidationError("nope", code=ErrorCode.UNKNOWN_COMMAND)
        assert error.code == ErrorCode.UNKNOWN_COMMAND

    def test_conflict_error(self) -> None:
        assert ConflictError("taken").code == ErrorCode.INDEX_CONFLICT

    def test_not_found_codes(self) -> None:
        """NotFoundError defaults to index and can name a collection."""
        assert NotFoundError("gone").code == ErrorCode.INDEX_NOT_FOUND
        error = NotFoundError("gone", code=ErrorCode.COLLECTION_NOT_FOUND)
        assert error.code == ErrorCode.COLLECTION_NOT_FOUND

    def test_index_not_found_is_not_found(self) -> None:
        error = IndexNotFoundError("no vector index")
        assert isinstance(error, NotFoundError)
        assert error.code == ErrorCode.INDEX_NOT_FOUND

    def test_dimension_mismatch(self) -> None:
        error = DimensionMismatchError("wrong length", details={"expected": 3, "actual": 2})
        assert error.code == ErrorCode.DIMENSION_MISMATCH
        assert error.details["expected"] == 3

    def test_catalog_error(self) -> None:
        assert CatalogError("io").code == ErrorCode.CATALOG_ERROR
        assert CatalogError("bad", code=ErrorCode.CATALOG_CORRUPT).code == ErrorCode.CATALOG_CORRUPT
