import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.article_service import ArticleService, get_article_service
from app.database import get_db
from app.errors import ArticleNotFoundError
from app.resources import article_collection, article_resource
from app.responses import not_found, success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public/news", tags=["public"])


@router.get("")
def public_index(service: ArticleService = Depends(get_article_service), db: Session = Depends(get_db)):
    """Return visible articles only, in the same shape as the admin listing."""
    articles = service.list_public()
    logger.info(f"[/public/news] Returning {len(articles)} visible articles")
    data = [resource.model_dump() for resource in article_collection(articles, db)]
    return success(data)


@router.get("/{article_id}")
def public_show(article_id: int, service: ArticleService = Depends(get_article_service), db: Session = Depends(get_db)):
    # An invisible article gets the same 404 as a missing one
    try:
        article = service.get_public(article_id)
    except ArticleNotFoundError:
        return not_found()
    return success(article_resource(article, db).model_dump())
