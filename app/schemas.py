from pathlib import PurePath
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Input structures
# ---------------------------------------------------------------------------

class ThumbnailUpload(BaseModel):
    """An uploaded thumbnail, read fully into memory before validation."""
    filename: str
    content_type: Optional[str] = None
    content: bytes

    model_config = ConfigDict(frozen=True)

    @property
    def extension(self) -> str:
        return PurePath(self.filename).suffix.lstrip(".").lower()

    @property
    def size_kb(self) -> float:
        return len(self.content) / 1024


class ArticleCreate(BaseModel):
    """Fields accepted when creating an article. Title rules are checked here, uniqueness by the service."""
    title: str = Field(min_length=3)
    body: Optional[str] = None
    visible: bool = False
    completed: bool = False
    categories: Optional[List[int]] = None
    images: Optional[List[int]] = None

    model_config = ConfigDict(frozen=True)


class ArticleUpdate(BaseModel):
    """
    Partial update of an article.

    Only fields explicitly set are applied (see model_fields_set), so
    visible=False is a real change while a missing visible leaves it alone.
    Title is always required.
    """
    title: str = Field(min_length=3)
    body: Optional[str] = None
    visible: Optional[bool] = None
    completed: Optional[bool] = None
    categories: Optional[List[int]] = None
    images: Optional[List[int]] = None

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Resources (response shapes)
# ---------------------------------------------------------------------------

class ImageResource(BaseModel):
    id: int
    path: str

    model_config = ConfigDict(from_attributes=True)


class CategoryResource(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class ArticleResource(BaseModel):
    """Public shape of an article with its album and categories."""
    id: int
    title: str
    thumbnail: str
    album_size: int
    album: List[ImageResource]
    categories_count: int
    categories: List[CategoryResource]


class Envelope(BaseModel):
    """Wrapper returned by every endpoint."""
    status: str
    error: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    validation_errors: Optional[Dict[str, List[str]]] = None
