"""
In-memory test double for database.Repository.

Matches documents by plain equality on every filter key, enforces the
natural-key uniqueness that the real unique indexes give, and counts every
call so tests can assert which collections a request touched.
"""

from collections import Counter

from bson import ObjectId
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from database import UNIQUE_KEYS, Repositories


class InMemoryRepository:

    def __init__(self, name, unique_key=None):
        self.name = name
        self.unique_key = unique_key
        self.documents = []
        self.calls = Counter()
        self.fail_with = None

    @property
    def total_calls(self):
        return sum(self.calls.values())

    def _record(self, method):
        self.calls[method] += 1
        if self.fail_with is not None:
            raise self.fail_with

    @staticmethod
    def _matches(doc, filter_dict):
        return all(doc.get(key) == value for key, value in filter_dict.items())

    def _check_unique(self, candidate, ignore=None):
        if not self.unique_key or self.unique_key not in candidate:
            return
        for doc in self.documents:
            if doc is not ignore and doc.get(self.unique_key) == candidate[self.unique_key]:
                raise DuplicateKeyError(f"E11000 duplicate key error: {self.unique_key}")

    def find_one(self, filter_dict, projection=None):
        self._record("find_one")
        for doc in self.documents:
            if self._matches(doc, filter_dict):
                return dict(doc)
        return None

    def exists(self, filter_dict):
        self._record("exists")
        return any(self._matches(doc, filter_dict) for doc in self.documents)

    def get_documents(self, filter_dict=None, limit=None, projection=None):
        self._record("get_documents")
        docs = [dict(doc) for doc in self.documents if self._matches(doc, filter_dict or {})]
        return docs[:limit] if limit else docs

    def create_document(self, data):
        self._record("create_document")
        if isinstance(data, BaseModel):
            data = data.model_dump()
        doc = dict(data)
        self._check_unique(doc)
        doc.setdefault("_id", ObjectId())
        self.documents.append(doc)
        return str(doc["_id"])

    def update_one(self, filter_dict, fields):
        self._record("update_one")
        for doc in self.documents:
            if self._matches(doc, filter_dict):
                self._check_unique(fields, ignore=doc)
                doc.update(fields)
                return 1
        return 0

    def delete_one(self, filter_dict):
        self._record("delete_one")
        for doc in self.documents:
            if self._matches(doc, filter_dict):
                self.documents.remove(doc)
                return 1
        return 0


def make_repositories():
    return Repositories(
        users=InMemoryRepository("user", UNIQUE_KEYS["user"]),
        movies=InMemoryRepository("movie", UNIQUE_KEYS["movie"]),
        directors=InMemoryRepository("director", UNIQUE_KEYS["director"]),
        genres=InMemoryRepository("genre", UNIQUE_KEYS["genre"]),
    )
