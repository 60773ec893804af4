from typing import Iterable, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import Article, Image, category_news
from app.schemas import ArticleResource, CategoryResource, ImageResource


def article_resource(article: Article, db: Session) -> ArticleResource:
    """
    Project an article and its relations into the public response shape.
    Both counts are queried on every call rather than read off the loaded collections.
    """
    album_size = (
        db.query(func.count(Image.id))
        .filter(Image.news_id == article.id)
        .scalar()
    )
    categories_count = (
        db.query(func.count())
        .select_from(category_news)
        .filter(category_news.c.news_id == article.id)
        .scalar()
    )
    return ArticleResource(
        id=article.id,
        title=article.title,
        thumbnail=article.thumbnail,
        album_size=album_size,
        album=[ImageResource.model_validate(image) for image in article.images],
        categories_count=categories_count,
        categories=[CategoryResource.model_validate(category) for category in article.categories],
    )


def article_collection(articles: Iterable[Article], db: Session) -> List[ArticleResource]:
    return [article_resource(article, db) for article in articles]
