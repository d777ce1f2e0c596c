"""
API tests for movies, directors and genres.
"""

import pytest

from validation import DIRECTOR_NAME_TOO_SHORT

ALIEN = {
    "title": "Alien",
    "description": "The crew of a commercial spacecraft encounters a deadly lifeform.",
    "genre": {"name": "Science Fiction", "description": "Speculative futures."},
    "director": {"name": "Ridley Scott", "bio": "English filmmaker."},
    "actors": ["Sigourney Weaver", "Tom Skerritt"],
    "imagePath": "https://img.myflix.io/alien.png",
    "featured": True,
}


@pytest.fixture
def headers(make_user, auth_headers):
    make_user("alice1")
    return auth_headers("alice1")


class TestMovies:

    def test_create_requires_token(self, client):
        assert client.post("/movies", json=ALIEN).status_code == 401

    def test_create_then_read_round_trip(self, client, headers):
        response = client.post("/movies", json=ALIEN, headers=headers)
        assert response.status_code == 201
        assert response.json() == {"message": "Movie Alien was created."}

        body = client.get("/movies/Alien").json()
        body.pop("id")
        assert body == ALIEN

    def test_unset_optional_fields_read_back_as_null(self, client, headers):
        client.post("/movies", json={"title": "Heat", "description": "Cops and robbers."}, headers=headers)
        body = client.get("/movies/Heat").json()
        assert body["genre"] is None
        assert body["director"] is None
        assert body["imagePath"] is None
        assert body["featured"] is None
        assert body["actors"] == []

    def test_duplicate_title(self, client, headers):
        client.post("/movies", json=ALIEN, headers=headers)
        response = client.post("/movies", json=ALIEN, headers=headers)
        assert response.status_code == 422
        assert response.json()["message"] == "A movie with the title 'Alien' already exists in the database."

    def test_missing_description(self, client, headers):
        response = client.post("/movies", json={"title": "Heat"}, headers=headers)
        assert response.status_code == 422
        assert response.json()["message"] == "description is required."

    def test_unknown_title(self, client):
        response = client.get("/movies/Nope")
        assert response.status_code == 404
        assert response.json()["message"] == "A movie with the title 'Nope' does not exist in the database."

    def test_list_with_limit(self, client, make_movie):
        for title in ("Alien", "Aliens", "Alien 3"):
            make_movie(title)
        assert len(client.get("/movies").json()) == 3
        assert len(client.get("/movies", params={"limit": 2}).json()) == 2

    def test_limit_must_be_positive(self, client):
        assert client.get("/movies", params={"limit": 0}).status_code == 422

    def test_unknown_query_parameter(self, client):
        response = client.get("/movies", params={"sort": "title"})
        assert response.status_code == 422
        assert response.json()["message"] == "Request contains unknown fields."

    def test_non_numeric_limit(self, client):
        response = client.get("/movies", params={"limit": "abc"})
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert response.json()["message"].startswith("limit: ")

    def test_malformed_json_body(self, client, headers):
        response = client.post("/movies", content="{\"title\": ", headers={**headers, "Content-Type": "application/json"})
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_unexpected_error_is_generic_500(self, client, repos, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("internal detail")
        monkeypatch.setattr(repos.movies, "get_documents", boom)
        response = client.get("/movies")
        assert response.status_code == 500
        assert response.text == "Something broke!"


class TestDirectors:

    def test_create_and_read(self, client, headers):
        response = client.post("/directors", json={
            "name": "Steven Spielberg",
            "bio": "American filmmaker.",
            "birthday": "1946-12-18",
        }, headers=headers)
        assert response.status_code == 201

        body = client.get("/directors/Steven Spielberg").json()
        assert body["birthday"] == "1946-12-18"
        assert body["deathday"] is None

    def test_short_name(self, client, headers):
        response = client.post("/directors", json={"name": "Al", "bio": "x"}, headers=headers)
        assert response.status_code == 422
        assert response.json()["message"] == DIRECTOR_NAME_TOO_SHORT

    def test_invalid_deathday(self, client, headers):
        response = client.post("/directors", json={"name": "Someone", "bio": "x", "deathday": "soon"},
                               headers=headers)
        assert response.json()["message"] == "deathday is not a valid date"

    def test_unknown_director(self, client):
        assert client.get("/directors/Nobody").status_code == 404


class TestGenres:

    def test_create_list_and_read(self, client, headers):
        client.post("/genres", json={"name": "Drama", "description": "Serious stories."}, headers=headers)
        client.post("/genres", json={"name": "Comedy", "description": "Funny stories."}, headers=headers)
        assert [g["name"] for g in client.get("/genres").json()] == ["Drama", "Comedy"]
        assert client.get("/genres/Drama").json()["description"] == "Serious stories."

    def test_key_claimed_between_validation_and_insert(self, client, repos, headers, monkeypatch):
        repos.genres.create_document({"name": "Drama", "description": "Serious stories."})
        monkeypatch.setattr(repos.genres, "exists", lambda filter_dict: False)
        response = client.post("/genres", json={"name": "Drama", "description": "Again."}, headers=headers)
        assert response.status_code == 422
        assert response.json()["message"] == "A genre with the name 'Drama' already exists in the database."
