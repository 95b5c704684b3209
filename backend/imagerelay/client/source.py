"""
Local image file handed to the uploader.
"""
import base64
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Union

from imagerelay.utils.media import mime_type_of, safe_filename


@dataclass
class LocalImage:
    """A file on the device plus the name and type it is uploaded under."""
    path: Path
    filename: str
    mime_type: str

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "LocalImage":
        path = Path(path)
        return cls(
            path=path,
            filename=safe_filename(str(path)),
            mime_type=mime_type_of(str(path)),
        )

    def exists(self) -> bool:
        return self.path.is_file()

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    def open(self) -> BinaryIO:
        return open(self.path, "rb")

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def read_base64(self) -> str:
        return base64.b64encode(self.read_bytes()).decode("ascii")
