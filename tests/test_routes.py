"""
Unit tests for the API routes — in-memory SQLite database, thumbnails stored under tmp_path.

Run with: pytest tests/test_routes.py -v
"""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.models import Article, Category, Image
from app.responses import install_handlers
from app.routes.articles import router as articles_router
from app.routes.public import router as public_router
from app.storage import ThumbnailStorage, get_storage

# Minimal test app — no lifespan, no static mount
_app = FastAPI()
_app.include_router(articles_router)
_app.include_router(public_router)
install_handlers(_app)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def db():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def storage(tmp_path):
    return ThumbnailStorage(str(tmp_path), "thumbnails")


@pytest.fixture
def client(db, storage):
    _app.dependency_overrides[get_db] = lambda: db
    _app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(_app)
    _app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SIGNATURES = {"image/jpeg": b"\xff\xd8\xff\xe0", "image/png": b"\x89PNG\r\n\x1a\n"}


def thumbnail_file(name="cover.jpg", content_type="image/jpeg", size=128) -> dict:
    return {"thumbnail": (name, SIGNATURES[content_type] + b"\x00" * size, content_type)}


def create_article(client, **fields) -> dict:
    """POST a valid article through the API and return the response body."""
    data = {"title": "Local News Today"}
    data.update(fields)
    response = client.post("/news", data=data, files=thumbnail_file())
    assert response.status_code == 201, response.json()
    return response.json()["data"]


def insert_article(db, **kwargs) -> Article:
    """Insert an Article directly into the DB, bypassing validation and storage."""
    defaults = {
        "title": "Inserted article",
        "thumbnail": "thumbnails/inserted.jpg",
        "visible": False,
        "completed": False,
    }
    defaults.update(kwargs)
    article = Article(**defaults)
    db.add(article)
    db.commit()
    return article


def insert_categories(db, *names) -> list:
    categories = [Category(name=name) for name in names]
    db.add_all(categories)
    db.commit()
    return [category.id for category in categories]


def insert_images(db, count) -> list:
    images = [Image(path=f"album/{i}.jpg") for i in range(count)]
    db.add_all(images)
    db.commit()
    return [image.id for image in images]


# ---------------------------------------------------------------------------
# POST /news
# ---------------------------------------------------------------------------

class TestStore:
    def test_returns_201_and_envelope(self, client):
        response = client.post("/news", data={"title": "Local News Today"}, files=thumbnail_file())

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "success"
        assert body["error"] is False
        assert body["message"] == "Success! news article created."
        assert body["data"]["title"] == "Local News Today"

    def test_response_shape(self, client):
        article = create_article(client)

        assert set(article.keys()) == {
            "id", "title", "thumbnail", "album_size", "album", "categories_count", "categories",
        }
        assert article["thumbnail"].startswith("thumbnails/")

    def test_thumbnail_is_written_to_storage(self, client, storage):
        article = create_article(client)
        assert storage.exists(article["thumbnail"])

    def test_with_categories_and_images(self, client, db):
        category_ids = insert_categories(db, "Politics", "Sport")
        image_ids = insert_images(db, 2)

        article = create_article(
            client,
            categories=[str(i) for i in category_ids],
            images=[str(i) for i in image_ids],
        )

        assert article["categories_count"] == 2
        assert {c["name"] for c in article["categories"]} == {"Politics", "Sport"}
        assert article["album_size"] == 2
        assert [i["id"] for i in article["album"]] == image_ids

    def test_short_title_returns_validation_errors(self, client, db):
        response = client.post("/news", data={"title": "Ab"}, files=thumbnail_file())

        # Validation failures keep the default 200 status
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "fail"
        assert body["error"] is True
        assert body["validation_errors"] == {"title": ["The title must be at least 3 characters."]}
        assert "data" not in body
        assert db.query(Article).count() == 0

    def test_missing_thumbnail_returns_validation_errors(self, client):
        response = client.post("/news", data={"title": "Local News Today"})

        assert response.json()["validation_errors"] == {"thumbnail": ["The thumbnail field is required."]}

    def test_oversized_thumbnail_returns_validation_errors(self, client):
        response = client.post(
            "/news", data={"title": "Local News Today"}, files=thumbnail_file(size=2560 * 1024)
        )

        assert "thumbnail" in response.json()["validation_errors"]

    def test_duplicate_title_returns_validation_errors(self, client, db):
        create_article(client)
        response = client.post("/news", data={"title": "Local News Today"}, files=thumbnail_file())

        assert response.json()["validation_errors"]["title"] == ["The title has already been taken."]
        assert db.query(Article).count() == 1

    def test_unknown_category_returns_404_and_leaves_nothing(self, client, db):
        response = client.post(
            "/news", data={"title": "Local News Today", "categories": ["999"]}, files=thumbnail_file()
        )

        assert response.status_code == 404
        body = response.json()
        assert body["status"] == "fail"
        assert "999" in body["message"]
        assert db.query(Article).count() == 0

    def test_non_integer_category_returns_validation_errors(self, client, db):
        response = client.post(
            "/news", data={"title": "Local News Today", "categories": ["abc"]}, files=thumbnail_file()
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "fail"
        assert body["error"] is True
        assert list(body["validation_errors"]) == ["categories"]
        assert db.query(Article).count() == 0

    def test_non_boolean_visible_returns_validation_errors(self, client, db):
        response = client.post(
            "/news", data={"title": "Local News Today", "visible": "maybe"}, files=thumbnail_file()
        )

        body = response.json()
        assert body["status"] == "fail"
        assert list(body["validation_errors"]) == ["visible"]
        assert db.query(Article).count() == 0

    def test_renamed_non_image_returns_validation_errors(self, client, db):
        response = client.post(
            "/news",
            data={"title": "Local News Today"},
            files={"thumbnail": ("evil.jpg", b"%PDF-1.4 not an image", "image/jpeg")},
        )

        assert "The thumbnail must be an image." in response.json()["validation_errors"]["thumbnail"]
        assert db.query(Article).count() == 0


# ---------------------------------------------------------------------------
# GET /news and /news/{id}
# ---------------------------------------------------------------------------

class TestIndexAndShow:
    def test_index_returns_all_articles(self, client, db):
        insert_article(db, title="Visible one", visible=True)
        insert_article(db, title="Hidden one", visible=False)

        response = client.get("/news")

        assert response.status_code == 200
        assert [a["title"] for a in response.json()["data"]] == ["Visible one", "Hidden one"]

    def test_index_empty(self, client):
        body = client.get("/news").json()
        assert body == {"status": "success", "error": False, "data": []}

    def test_show_returns_invisible_article(self, client, db):
        article = insert_article(db, visible=False)

        response = client.get(f"/news/{article.id}")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == article.id

    def test_show_missing_returns_404(self, client):
        response = client.get("/news/42")

        assert response.status_code == 404
        assert response.json() == {
            "status": "fail", "error": True, "message": "Failed! no news article found.",
        }


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------

class TestPublic:
    def test_index_returns_visible_only(self, client, db):
        insert_article(db, title="Visible one", visible=True)
        insert_article(db, title="Hidden one", visible=False)

        titles = [a["title"] for a in client.get("/public/news").json()["data"]]

        assert titles == ["Visible one"]

    def test_show_visible_article(self, client, db):
        article = insert_article(db, visible=True)
        response = client.get(f"/public/news/{article.id}")

        assert response.status_code == 200
        assert response.json()["data"]["title"] == "Inserted article"

    def test_invisible_article_looks_missing(self, client, db):
        article = insert_article(db, visible=False)

        hidden = client.get(f"/public/news/{article.id}")
        missing = client.get("/public/news/42")

        assert hidden.status_code == missing.status_code == 404
        assert hidden.json() == missing.json()

    def test_non_integer_id_looks_missing(self, client):
        response = client.get("/public/news/abc")

        assert response.status_code == 404
        assert response.json() == {
            "status": "fail", "error": True, "message": "Failed! no news article found.",
        }


# ---------------------------------------------------------------------------
# PUT/PATCH /news/{id}
# ---------------------------------------------------------------------------

class TestUpdate:
    def test_returns_201_and_updated_article(self, client):
        article = create_article(client)

        response = client.put(f"/news/{article['id']}", data={"title": "Renamed article"})

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Success! news article updated."
        assert body["data"]["title"] == "Renamed article"
        assert body["data"]["thumbnail"] == article["thumbnail"]

    def test_patch_is_accepted(self, client):
        article = create_article(client)
        response = client.patch(f"/news/{article['id']}", data={"title": "Renamed article"})
        assert response.status_code == 201

    def test_missing_title_returns_validation_errors(self, client):
        article = create_article(client)

        response = client.put(f"/news/{article['id']}", data={"body": "New body"})

        assert response.status_code == 200
        assert response.json()["validation_errors"] == {"title": ["The title field is required."]}

    def test_missing_article_returns_404(self, client):
        response = client.put("/news/42", data={"title": "Renamed article"})

        assert response.status_code == 404
        assert response.json()["message"] == "Failed! no news article found."

    def test_visible_false_hides_article(self, client):
        article = create_article(client, visible="true")
        assert client.get(f"/public/news/{article['id']}").status_code == 200

        client.put(f"/news/{article['id']}", data={"title": "Local News Today", "visible": "false"})

        assert client.get(f"/public/news/{article['id']}").status_code == 404

    def test_categories_set_replace(self, client, db):
        one, two, three = insert_categories(db, "Politics", "Sport", "Weather")
        article = create_article(client)

        client.put(f"/news/{article['id']}", data={"title": "Local News Today", "categories": [str(one), str(two)]})
        assert client.get(f"/news/{article['id']}").json()["data"]["categories_count"] == 2

        client.put(f"/news/{article['id']}", data={"title": "Local News Today", "categories": [str(two), str(three)]})
        data = client.get(f"/news/{article['id']}").json()["data"]

        assert {c["id"] for c in data["categories"]} == {two, three}
        assert data["categories_count"] == 2

    def test_images_claim_and_release(self, client, db):
        image_ids = insert_images(db, 3)
        article = create_article(client, images=[str(i) for i in image_ids[:2]])

        response = client.put(
            f"/news/{article['id']}",
            data={"title": "Local News Today", "images": [str(image_ids[2])]},
        )

        data = response.json()["data"]
        assert data["album_size"] == 1
        assert [i["id"] for i in data["album"]] == [image_ids[2]]

    def test_new_thumbnail(self, client, storage):
        article = create_article(client)

        response = client.put(
            f"/news/{article['id']}",
            data={"title": "Local News Today"},
            files=thumbnail_file(name="new.png", content_type="image/png"),
        )

        new_path = response.json()["data"]["thumbnail"]
        assert new_path != article["thumbnail"]
        assert new_path.endswith(".png")
        assert storage.exists(new_path)

    def test_unknown_category_returns_404_and_keeps_article(self, client, db):
        article = create_article(client)

        response = client.put(
            f"/news/{article['id']}",
            data={"title": "Renamed article", "categories": ["999"]},
        )

        assert response.status_code == 404
        body = response.json()
        assert body["status"] == "fail"
        assert body["error"] is True
        assert "999" in body["message"]
        assert client.get(f"/news/{article['id']}").json()["data"]["title"] == "Local News Today"

    def test_non_integer_id_returns_404(self, client):
        response = client.put("/news/abc", data={"title": "Renamed article"})

        assert response.status_code == 404
        assert response.json()["message"] == "Failed! no news article found."


# ---------------------------------------------------------------------------
# DELETE /news/{id}
# ---------------------------------------------------------------------------

class TestDestroy:
    def test_deletes_article(self, client, db):
        category_ids = insert_categories(db, "Politics")
        image_ids = insert_images(db, 2)
        article = create_article(
            client,
            categories=[str(i) for i in category_ids],
            images=[str(i) for i in image_ids],
        )

        response = client.delete(f"/news/{article['id']}")

        assert response.status_code == 200
        assert response.json() == {
            "status": "success", "error": False, "message": "Success! news article deleted.",
        }
        assert client.get(f"/news/{article['id']}").status_code == 404
        assert db.query(Image).count() == 0
        assert db.query(Category).count() == 1

    def test_missing_article_returns_404(self, client):
        response = client.delete("/news/42")

        assert response.status_code == 404
        assert response.json()["status"] == "fail"
