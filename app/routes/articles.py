import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from app.article_service import ArticleService, get_article_service
from app.database import get_db
from app.errors import ArticleNotFoundError, ArticleValidationError, ArticleWriteError
from app.resources import article_collection, article_resource
from app.responses import fail, not_found, success, validation_failed
from app.schemas import ThumbnailUpload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/news", tags=["news"])


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------

def read_thumbnail(file: Optional[UploadFile]) -> Optional[ThumbnailUpload]:
    """Read an uploaded file into memory. An empty file field counts as no upload."""
    if file is None or not file.filename:
        return None
    try:
        content = file.file.read()
    finally:
        file.file.close()
    return ThumbnailUpload(filename=file.filename, content_type=file.content_type, content=content)


def provided(**fields) -> dict:
    """Keep only the form fields that were actually sent."""
    return {name: value for name, value in fields.items() if value is not None}


# ---------------------------------------------------------------------------
# Admin endpoints
# ---------------------------------------------------------------------------

@router.get("")
def index(service: ArticleService = Depends(get_article_service), db: Session = Depends(get_db)):
    """Return every article regardless of visibility."""
    articles = service.list_all()
    logger.info(f"[/news] Returning {len(articles)} articles")
    data = [resource.model_dump() for resource in article_collection(articles, db)]
    return success(data)


@router.post("")
def store(
    # Form values arrive as raw strings; ArticleCreate coerces them so bad values become validation_errors
    title: Optional[str] = Form(None),
    body: Optional[str] = Form(None),
    visible: Optional[str] = Form(None),
    completed: Optional[str] = Form(None),
    categories: Optional[List[str]] = Form(None),
    images: Optional[List[str]] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    service: ArticleService = Depends(get_article_service),
    db: Session = Depends(get_db),
):
    """Create an article from a multipart form with a mandatory thumbnail upload."""
    fields = provided(
        title=title, body=body, visible=visible, completed=completed,
        categories=categories, images=images,
    )
    try:
        article = service.create(fields, read_thumbnail(thumbnail))
    except ArticleValidationError as e:
        return validation_failed(e.errors)
    except ArticleWriteError as e:
        return fail(str(e), status_code=404)

    return success(
        article_resource(article, db).model_dump(),
        message="Success! news article created.",
        status_code=201,
    )


@router.get("/{article_id}")
def show(article_id: int, service: ArticleService = Depends(get_article_service), db: Session = Depends(get_db)):
    try:
        article = service.get(article_id)
    except ArticleNotFoundError:
        return not_found()
    return success(article_resource(article, db).model_dump())


@router.api_route("/{article_id}", methods=["PUT", "PATCH"])
def update(
    article_id: int,
    title: Optional[str] = Form(None),
    body: Optional[str] = Form(None),
    visible: Optional[str] = Form(None),
    completed: Optional[str] = Form(None),
    categories: Optional[List[str]] = Form(None),
    images: Optional[List[str]] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    service: ArticleService = Depends(get_article_service),
    db: Session = Depends(get_db),
):
    """Partially update an article. Title is always required, everything else only when sent."""
    fields = provided(
        title=title, body=body, visible=visible, completed=completed,
        categories=categories, images=images,
    )
    try:
        article = service.update(article_id, fields, read_thumbnail(thumbnail))
    except ArticleNotFoundError:
        return not_found()
    except ArticleValidationError as e:
        return validation_failed(e.errors)
    except ArticleWriteError as e:
        return fail(str(e), status_code=404)

    return success(
        article_resource(article, db).model_dump(),
        message="Success! news article updated.",
        status_code=201,
    )


@router.delete("/{article_id}")
def destroy(article_id: int, service: ArticleService = Depends(get_article_service)):
    try:
        service.delete(article_id)
    except ArticleNotFoundError:
        return not_found()
    except ArticleWriteError as e:
        return fail(str(e), status_code=404)
    return success(message="Success! news article deleted.")
