"""
Tests for Pydantic schemas validation.
"""
import pytest
from pydantic import ValidationError

from imagerelay.schemas.documents import MatchMovesUpdate, as_list
from imagerelay.schemas.upload import (
    Base64UploadRequest,
    ErrorResponse,
    HealthResponse,
    UploadResponse,
    UploadedFile,
)


class TestUploadSchemas:
    """Tests for upload request/response schemas."""

    def test_base64_request_fields_optional(self):
        """Test missing fields are left for the endpoint to reject."""
        schema = Base64UploadRequest()
        assert schema.image is None
        assert schema.filename is None

    def test_upload_response_valid(self):
        schema = UploadResponse(
            message="File uploaded successfully",
            file=UploadedFile(
                filename="1700000000000-42.png",
                mimetype="image/png",
                size=10,
                url="http://test/uploads/1700000000000-42.png",
            )
        )
        assert schema.success is True
        assert schema.file.originalname is None

    def test_uploaded_file_requires_url(self):
        with pytest.raises(ValidationError):
            UploadedFile(filename="a.png", mimetype="image/png", size=1)

    def test_error_response_omits_empty_error(self):
        schema = ErrorResponse(message="No file uploaded")
        assert schema.model_dump(exclude_none=True) == {"success": False, "message": "No file uploaded"}

    def test_health_defaults(self):
        schema = HealthResponse(timestamp="2024-01-01T00:00:00.000Z")
        assert schema.status == "ok"
        assert schema.message == "Server is running"


class TestMatchMovesUpdate:
    """Tests for move list normalization."""

    @pytest.mark.parametrize("value,expected", [
        (None, []),
        ("e4", ["e4"]),
        (("e4", "e5"), ["e4", "e5"]),
        (["d4"], ["d4"]),
    ])
    def test_as_list(self, value, expected):
        assert as_list(value) == expected

    def test_scalar_moves_become_list(self):
        update = MatchMovesUpdate(movesPlayed="e4")
        assert update.moves_played == ["e4"]

    def test_null_moves_become_empty(self):
        update = MatchMovesUpdate(movesPlayed=None)
        assert update.moves_played == []

    def test_populate_by_field_name(self):
        update = MatchMovesUpdate(moves_played=["e4", "c5"], current_fen="fen")
        assert update.moves_played == ["e4", "c5"]

    def test_append_move_returns_copy(self):
        update = MatchMovesUpdate(movesPlayed=["e4"])

        appended = update.append_move("e5")

        assert appended.moves_played == ["e4", "e5"]
        assert update.moves_played == ["e4"]

    def test_to_document_uses_stored_names(self):
        update = MatchMovesUpdate(movesPlayed="Nf3")
        assert update.to_document() == {"movesPlayed": ["Nf3"]}
