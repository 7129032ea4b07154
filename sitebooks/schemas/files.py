from pydantic import BaseModel
from typing import Optional


class Base64Upload(BaseModel):
    original_name: str
    content_type: Optional[str] = None
    category: Optional[str] = None
    data: str  # base64, optionally as a data: URL


class UploadResponse(BaseModel):
    key: str
    url: str
    size_bytes: int
    content_type: str
