from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from app.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


# Join table for the article <-> category many-to-many relation.
# The composite primary key keeps a link from being stored twice.
category_news = Table(
    "category_news",
    Base.metadata,
    Column("category_id", Integer, ForeignKey("categories.id"), primary_key=True),
    Column("news_id", Integer, ForeignKey("news.id"), primary_key=True),
)


class Article(Base):
    __tablename__ = "news"

    id = Column(Integer, primary_key=True, index=True)
    # Uniqueness is checked when an article is created, not enforced by an index
    title = Column(String, nullable=False, index=True)
    body = Column(Text, nullable=True)
    thumbnail = Column(String, nullable=False)    # path relative to the storage root
    visible = Column(Boolean, nullable=False, default=False)
    completed = Column(Boolean, nullable=False, default=False)

    # --- Metadata ---
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    # No cascades: the article service detaches and deletes explicitly
    categories = relationship(
        "Category",
        secondary=category_news,
        back_populates="articles",
        order_by="Category.id",
    )
    images = relationship("Image", back_populates="article", order_by="Image.id")


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)

    articles = relationship("Article", secondary=category_news, back_populates="categories")


class Image(Base):
    __tablename__ = "images"

    id = Column(Integer, primary_key=True, index=True)
    path = Column(String, nullable=False)
    # Album images are uploaded on their own and claimed by an article later
    news_id = Column(Integer, ForeignKey("news.id"), nullable=True, index=True)

    article = relationship("Article", back_populates="images")
