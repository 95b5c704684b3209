"""
Document schemas written to the remote document database.

Sequence fields are normalized once, here, when a document update is built;
readers can rely on them being lists.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional


def as_list(value: Any) -> List[Any]:
    """None -> [], list/tuple -> list, any scalar -> [scalar]."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class MatchMovesUpdate(BaseModel):
    """Partial update of a match document carrying the played moves."""
    model_config = ConfigDict(populate_by_name=True)

    moves_played: List[str] = Field(default_factory=list, alias="movesPlayed")
    current_fen: Optional[str] = Field(None, alias="currentFen")

    @field_validator("moves_played", mode="before")
    @classmethod
    def normalize_moves(cls, value: Any) -> List[Any]:
        return as_list(value)

    def append_move(self, move: str) -> "MatchMovesUpdate":
        """Copy of this update with one more move at the end."""
        return self.model_copy(update={"moves_played": [*self.moves_played, move]})

    def to_document(self) -> dict:
        """Field names as stored in the collection."""
        return self.model_dump(by_alias=True, exclude_none=True)
