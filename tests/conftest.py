import os

# Cheap hashes and no real database for the whole test session
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.pop("DATABASE_URL", None)

import pytest
from fastapi.testclient import TestClient

from auth import create_access_token, hash_password
from database import get_repositories
from fakes import make_repositories
from main import app


@pytest.fixture
def repos():
    return make_repositories()


@pytest.fixture
def client(repos):
    app.dependency_overrides[get_repositories] = lambda: repos
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(repos):
    """Insert a user directly and return the stored document."""
    def _make(username="alice1", password="secret123", email="alice@mail.org", **extra):
        doc = {
            "username": username,
            "password": hash_password(password),
            "email": email,
            "birthday": None,
            "favourites": [],
            **extra,
        }
        repos.users.create_document(doc)
        stored = repos.users.find_one({"username": username})
        repos.users.calls.clear()
        return stored
    return _make


@pytest.fixture
def make_movie(repos):
    """Insert a movie directly and return its id as a string."""
    def _make(title, **extra):
        movie_id = repos.movies.create_document({
            "title": title,
            "description": f"About {title}",
            "genre": None,
            "director": None,
            "actors": [],
            "imagePath": None,
            "featured": None,
            **extra,
        })
        repos.movies.calls.clear()
        return movie_id
    return _make


@pytest.fixture
def auth_headers():
    def _headers(username):
        return {"Authorization": f"Bearer {create_access_token({'sub': username})}"}
    return _headers
