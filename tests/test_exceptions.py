"""Tests for application exceptions."""

from resonance.exceptions import (
    ConfigurationError,
    DiscoveryError,
    ErrorCode,
    FeatureError,
    LinkError,
    ResonanceError,
    ScoringError,
    ValidationError,
    VectorIndexError,
)


class TestErrorCode:
    """Tests for error codes."""

    def test_error_code_format(self) -> None:
        """Error codes follow RES-XXXX format."""
        for code in ErrorCode:
            assert code.value.startswith("RES-")
            assert len(code.value) == 8

    def test_error_code_uniqueness(self) -> None:
        """All error codes are unique."""
        codes = [code.value for code in ErrorCode]
        assert len(codes) == len(set(codes))


class TestResonanceError:
    """Tests for base exception."""

    def test_basic_exception(self) -> None:
        """Base exception stores message and code."""
        error = ResonanceError("Something went wrong")
        assert error.message == "Something went wrong"
        assert error.code == ErrorCode.INTERNAL_ERROR
        assert error.details == {}

    def test_to_dict(self) -> None:
        """Exception converts to API response dict."""
        error = ResonanceError(
            "Link missing",
            code=ErrorCode.LINK_NOT_FOUND,
            details={"link_id": "abc"},
        )
        assert error.to_dict() == {
            "error": {
                "code": "RES-4001",
                "message": "Link missing",
                "details": {"link_id": "abc"},
            }
        }

    def test_str_representation(self) -> None:
        """Exception string is the message."""
        assert str(ResonanceError("Test error")) == "Test error"


class TestSubclasses:
    """Tests for specific exception types."""

    def test_configuration_error(self) -> None:
        """ConfigurationError has fixed code."""
        error = ConfigurationError("bad config")
        assert error.code == ErrorCode.CONFIGURATION_ERROR
        assert isinstance(error, ResonanceError)

    def test_validation_error(self) -> None:
        """ValidationError has fixed code."""
        assert ValidationError("bad input").code == ErrorCode.VALIDATION_ERROR

    def test_default_codes(self) -> None:
        """Component errors default to their group's base code."""
        assert FeatureError("x").code == ErrorCode.PHOTO_NOT_FOUND
        assert ScoringError("x").code == ErrorCode.SCORING_ERROR
        assert LinkError("x").code == ErrorCode.LINK_ERROR
        assert VectorIndexError("x").code == ErrorCode.VECTOR_INDEX_ERROR
        assert DiscoveryError("x").code == ErrorCode.DISCOVERY_ERROR

    def test_custom_code(self) -> None:
        """Component errors accept a specific code."""
        error = ScoringError("no embedding", code=ErrorCode.EMBEDDING_MISSING)
        assert error.code == ErrorCode.EMBEDDING_MISSING
