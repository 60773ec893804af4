import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fastapi import Depends
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.errors import ArticleNotFoundError, ArticleValidationError, ArticleWriteError
from app.models import Article, Category, Image
from app.schemas import ArticleCreate, ArticleUpdate, ThumbnailUpload
from app.storage import ThumbnailStorage, get_storage

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

THUMBNAIL_CONTENT_TYPES = {"image/jpeg", "image/png", "image/gif", "image/svg+xml"}

# Leading bytes of each accepted raster format and the extensions they stand for
IMAGE_SIGNATURES = [
    (b"\xff\xd8\xff", ("jpg", "jpeg")),
    (b"\x89PNG\r\n\x1a\n", ("png",)),
    (b"GIF87a", ("gif",)),
    (b"GIF89a", ("gif",)),
]

# Locations FastAPI prefixes to request errors, e.g. ("body", "categories", 0)
REQUEST_LOCATIONS = {"body", "query", "path", "header", "cookie"}


def error_messages(errors: Iterable[dict]) -> Dict[str, List[str]]:
    """Turn pydantic error dicts into {field: [human readable messages]}."""
    messages: Dict[str, List[str]] = {}
    for err in errors:
        loc = [part for part in err["loc"] if part not in REQUEST_LOCATIONS]
        field = str(loc[0]) if loc else "request"
        kind = err["type"]

        if kind == "missing" or (kind == "string_too_short" and not err.get("input")):
            message = f"The {field} field is required."
        elif kind == "string_too_short":
            message = f"The {field} must be at least {err['ctx']['min_length']} characters."
        else:
            message = f"The {field} is invalid: {err['msg']}."

        messages.setdefault(field, []).append(message)
    return messages


def field_messages(exc: ValidationError) -> Dict[str, List[str]]:
    return error_messages(exc.errors())


def sniff_image(content: bytes) -> Tuple[str, ...]:
    """Return the extensions matching the file's actual bytes, or () if it is no accepted image."""
    for signature, extensions in IMAGE_SIGNATURES:
        if content.startswith(signature):
            return extensions

    # SVG is text: an XML prolog or comment may come before the root element
    head = content[:1024].lstrip().lower()
    if head.startswith(b"<") and b"<svg" in head:
        return ("svg",)
    return ()


def thumbnail_messages(upload: Optional[ThumbnailUpload], required: bool) -> List[str]:
    """Check a thumbnail's bytes, name and size against the accepted formats and size limit."""
    if upload is None:
        return ["The thumbnail field is required."] if required else []

    allowed = settings.THUMBNAIL_EXTENSIONS
    detected = sniff_image(upload.content)

    messages = []
    if not detected or (upload.content_type and upload.content_type not in THUMBNAIL_CONTENT_TYPES):
        messages.append("The thumbnail must be an image.")
    if upload.extension not in allowed or not set(detected) & set(allowed):
        messages.append(f"The thumbnail must be a file of type: {', '.join(allowed)}.")
    if upload.size_kb > settings.THUMBNAIL_MAX_KB:
        messages.append(f"The thumbnail must not be greater than {settings.THUMBNAIL_MAX_KB} kilobytes.")
    return messages


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ArticleService:
    """
    Creates, reads, updates and deletes articles and keeps their
    categories and album images in step.

    Every multi-step write runs in a single transaction on the session:
    on failure the transaction is rolled back, any thumbnail stored for
    the request is deleted again, and ArticleWriteError is raised.
    """

    def __init__(self, db: Session, storage: ThumbnailStorage):
        self.db = db
        self.storage = storage

    # --- Reads ---

    def list_all(self) -> List[Article]:
        return self.db.query(Article).order_by(Article.id).all()

    def list_public(self) -> List[Article]:
        return (
            self.db.query(Article)
            .filter(Article.visible == True)
            .order_by(Article.id)
            .all()
        )

    def get(self, article_id: int) -> Article:
        article = self.db.get(Article, article_id)
        if article is None:
            logger.warning(f"Article {article_id} not found")
            raise ArticleNotFoundError(article_id)
        return article

    def get_public(self, article_id: int) -> Article:
        # Invisible articles are reported exactly like missing ones
        article = (
            self.db.query(Article)
            .filter(Article.id == article_id, Article.visible == True)
            .first()
        )
        if article is None:
            logger.warning(f"Public article {article_id} not found")
            raise ArticleNotFoundError(article_id)
        return article

    # --- Writes ---

    def create(self, fields: Dict[str, Any], thumbnail: Optional[ThumbnailUpload]) -> Article:
        """
        Validate and insert a new article, attach its categories and claim its images.

        Args:
            fields: submitted form fields; absent fields must simply be left out
            thumbnail: the uploaded thumbnail, required

        Raises:
            ArticleValidationError: nothing was written
            ArticleWriteError: the write failed and was rolled back
        """
        errors: Dict[str, List[str]] = {}
        data = None
        try:
            data = ArticleCreate(**fields)
        except ValidationError as e:
            errors.update(field_messages(e))

        if data is not None and self._title_taken(data.title):
            errors["title"] = ["The title has already been taken."]

        thumbnail_errors = thumbnail_messages(thumbnail, required=True)
        if thumbnail_errors:
            errors["thumbnail"] = thumbnail_errors

        if errors:
            logger.warning(f"Article creation rejected: {errors}")
            raise ArticleValidationError(errors)

        thumbnail_path = self._store_thumbnail(thumbnail)
        try:
            article = Article(
                title=data.title,
                body=data.body,
                thumbnail=thumbnail_path,
                visible=data.visible,
                completed=data.completed,
            )
            self.db.add(article)
            self.db.flush()  # assigns article.id for the relation steps

            if data.categories is not None:
                self._attach_categories(article, data.categories)
            if data.images is not None:
                self._claim_images(article.id, data.images)

            self.db.commit()
        except (ArticleWriteError, SQLAlchemyError) as e:
            self._abort("create", thumbnail_path, e)

        logger.info(f"Created article {article.id} '{article.title[:60]}'")
        return article

    def update(
        self,
        article_id: int,
        fields: Dict[str, Any],
        thumbnail: Optional[ThumbnailUpload] = None,
    ) -> Article:
        """
        Apply a partial update. Fields left out of `fields` keep their value;
        present categories replace the whole set, present images are claimed
        and any other image of the article is deleted.
        """
        article = self.get(article_id)

        errors: Dict[str, List[str]] = {}
        data = None
        try:
            data = ArticleUpdate(**fields)
        except ValidationError as e:
            errors.update(field_messages(e))

        thumbnail_errors = thumbnail_messages(thumbnail, required=False)
        if thumbnail_errors:
            errors["thumbnail"] = thumbnail_errors

        if errors:
            logger.warning(f"Update of article {article_id} rejected: {errors}")
            raise ArticleValidationError(errors)

        present = data.model_fields_set
        thumbnail_path = self._store_thumbnail(thumbnail) if thumbnail is not None else None
        try:
            article.title = data.title
            if "body" in present:
                article.body = data.body
            if thumbnail_path is not None:
                # The previous thumbnail file stays on disk
                article.thumbnail = thumbnail_path
            if data.visible is not None:
                article.visible = data.visible
            if data.completed is not None:
                article.completed = data.completed

            if data.categories is not None:
                article.categories = self._load_categories(data.categories)
            if data.images is not None:
                self._claim_images(article.id, data.images)

            self.db.commit()
        except (ArticleWriteError, SQLAlchemyError) as e:
            self._abort(f"update of article {article_id}", thumbnail_path, e)

        logger.info(f"Updated article {article.id} (fields: {sorted(present)})")
        return article

    def delete(self, article_id: int) -> None:
        """Detach all categories, delete owned images, then delete the article itself."""
        article = self.get(article_id)
        try:
            article.categories.clear()
            (
                self.db.query(Image)
                .filter(Image.news_id == article.id)
                .delete(synchronize_session="fetch")
            )
            self.db.delete(article)
            self.db.commit()
        except SQLAlchemyError as e:
            self._abort(f"delete of article {article_id}", None, e)

        logger.info(f"Deleted article {article_id}")

    # --- Helpers ---

    def _title_taken(self, title: str) -> bool:
        return self.db.query(Article.id).filter(Article.title == title).first() is not None

    def _store_thumbnail(self, thumbnail: ThumbnailUpload) -> str:
        try:
            return self.storage.store(thumbnail)
        except OSError as e:
            logger.error(f"Failed to store thumbnail '{thumbnail.filename}': {e}")
            raise ArticleWriteError(str(e)) from e

    def _load_categories(self, category_ids: List[int]) -> List[Category]:
        wanted = set(category_ids)
        categories = (
            self.db.query(Category)
            .filter(Category.id.in_(wanted))
            .order_by(Category.id)
            .all()
        )
        missing = wanted - {category.id for category in categories}
        if missing:
            raise ArticleWriteError(f"Categories not found: {sorted(missing)}")
        return categories

    def _attach_categories(self, article: Article, category_ids: List[int]) -> None:
        """Add links without touching existing ones."""
        for category in self._load_categories(category_ids):
            if category not in article.categories:
                article.categories.append(category)

    def _claim_images(self, article_id: int, image_ids: List[int]) -> None:
        """Point the listed images at the article and delete the article's other images."""
        (
            self.db.query(Image)
            .filter(Image.id.in_(image_ids))
            .update({Image.news_id: article_id}, synchronize_session="fetch")
        )
        (
            self.db.query(Image)
            .filter(Image.news_id == article_id, Image.id.notin_(image_ids))
            .delete(synchronize_session="fetch")
        )

    def _abort(self, action: str, thumbnail_path: Optional[str], exc: Exception):
        self.db.rollback()
        if thumbnail_path is not None:
            self.storage.delete(thumbnail_path)
        logger.error(f"Rolled back {action}: {exc}")
        raise ArticleWriteError(str(exc)) from exc


def get_article_service(
    db: Session = Depends(get_db),
    storage: ThumbnailStorage = Depends(get_storage),
) -> ArticleService:
    """FastAPI dependency wiring the service to the request's session and storage."""
    return ArticleService(db, storage)
