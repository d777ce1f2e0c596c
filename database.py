"""
Database access

The MongoDB client is created once at import time from DATABASE_URL /
DATABASE_NAME. Collections are named after the lowercase model name:
- User -> "user" collection
- Movie -> "movie" collection
- Director -> "director" collection
- Genre -> "genre" collection

Request code never touches `db` directly; it receives a `Repositories`
bundle through the `get_repositories` dependency.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

import settings

_client: Optional[MongoClient] = None
db: Optional[Database] = None

if settings.DATABASE_URL:
    _client = MongoClient(settings.DATABASE_URL, serverSelectionTimeoutMS=settings.DB_TIMEOUT_MS)
    db = _client[settings.DATABASE_NAME]

# Natural keys, one unique index each
UNIQUE_KEYS = {
    "user": "username",
    "movie": "title",
    "director": "name",
    "genre": "name",
}


class Repository:
    """Narrow view of one collection, the only storage surface the core uses."""

    def __init__(self, collection):
        self.collection = collection

    @property
    def name(self) -> str:
        return self.collection.name

    def find_one(self, filter_dict: Dict[str, Any], projection: Optional[Dict[str, Any]] = None):
        return self.collection.find_one(filter_dict, projection)

    def exists(self, filter_dict: Dict[str, Any]) -> bool:
        return self.collection.count_documents(filter_dict, limit=1) > 0

    def get_documents(self, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None,
                      projection: Optional[Dict[str, Any]] = None) -> List[dict]:
        cursor = self.collection.find(filter_dict or {}, projection)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def create_document(self, data) -> str:
        if isinstance(data, BaseModel):
            data = data.model_dump()
        result = self.collection.insert_one(dict(data))
        return str(result.inserted_id)

    def update_one(self, filter_dict: Dict[str, Any], fields: Dict[str, Any]) -> int:
        return self.collection.update_one(filter_dict, {"$set": fields}).matched_count

    def delete_one(self, filter_dict: Dict[str, Any]) -> int:
        return self.collection.delete_one(filter_dict).deleted_count


@dataclass
class Repositories:
    users: Repository
    movies: Repository
    directors: Repository
    genres: Repository


def repositories_for(database: Database) -> Repositories:
    return Repositories(
        users=Repository(database["user"]),
        movies=Repository(database["movie"]),
        directors=Repository(database["director"]),
        genres=Repository(database["genre"]),
    )


def get_repositories() -> Repositories:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not available")
    return repositories_for(db)


def ensure_indexes(database: Database) -> None:
    """Create the unique natural-key indexes. Safe to call on every startup."""
    for collection_name, key in UNIQUE_KEYS.items():
        database[collection_name].create_index([(key, ASCENDING)], unique=True)
