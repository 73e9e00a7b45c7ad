"""Upload models - files to upload, upload sessions and results"""

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional, Union

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class UploadFile:
    """A file selected for upload.

    The bytes come either from memory (``content``) or from disk (``path``).
    """

    name: str
    mime_type: str
    size: int
    content: Optional[bytes] = None
    path: Optional[Path] = None

    def __post_init__(self):
        """Validate file data"""
        if self.size < 0:
            raise ValueError("File size must be >= 0")
        if self.content is None and self.path is None:
            raise ValueError("Either content or path is required")

    @classmethod
    def from_path(cls, path: Union[str, Path], mime_type: Optional[str] = None) -> "UploadFile":
        """Create an UploadFile backed by a file on disk"""
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            mime_type=mime_type or guessed or DEFAULT_MIME_TYPE,
            size=path.stat().st_size,
            path=path,
        )

    @classmethod
    def from_bytes(cls, name: str, content: bytes, mime_type: Optional[str] = None) -> "UploadFile":
        """Create an UploadFile backed by in-memory bytes"""
        guessed, _ = mimetypes.guess_type(name)
        return cls(
            name=name,
            mime_type=mime_type or guessed or DEFAULT_MIME_TYPE,
            size=len(content),
            content=content,
        )

    async def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        """Yield the raw file bytes in chunks"""
        if self.content is not None:
            for offset in range(0, len(self.content), chunk_size):
                yield self.content[offset : offset + chunk_size]
            return

        with open(self.path, "rb") as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                yield chunk

    def metadata(self) -> Dict[str, Any]:
        """Metadata sent when an upload is initialized"""
        return {"originalname": self.name, "mimetype": self.mime_type, "size": self.size}


@dataclass(frozen=True)
class UploadSession:
    """Upload slot issued by the backend, valid for a single upload"""

    upload_id: str
    upload_url: str  # Presigned storage address
    file: UploadFile


@dataclass
class UploadResult:
    """Result of an upload"""

    success: bool
    data: Optional[Dict[str, Any]] = None  # Finalized file record
    message: Optional[str] = None  # Validation failure message

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            result["data"] = self.data
        if self.message is not None:
            result["message"] = self.message
        return result
