"""Upload configuration model."""

from pydantic import BaseModel, Field

MIB = 1024 * 1024


class UploadConfig(BaseModel):
    """Configuration for file uploads.

    Attributes:
        upload_limit: Largest accepted file size in bytes
        chunk_size: Size of the chunks streamed to storage
    """

    upload_limit: int = Field(50 * MIB, gt=0)
    chunk_size: int = Field(64 * 1024, gt=0)
