"""
Document mutation applier.

Takes a validated projection from `pipeline.validate_payload` and issues the
single write it describes. Writes are keyed by natural key (username, title,
name), never by internal id.

Unique indexes back every natural key (see `database.ensure_indexes`), so a
concurrent request that claims the same key between validation and write
surfaces here as the same "already exists" rejection the validator gives.
"""

from typing import Any, Dict, Optional, Type

from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import Repository
from outcomes import Created, NotFoundFailure, Ok, StorageFailure, ValidationFailure


def _storage_failure(error: PyMongoError) -> StorageFailure:
    return StorageFailure(f"Database error: {error}")


def apply_update(
    repository: Repository,
    key: Dict[str, Any],
    projection: Dict[str, Any],
    label: str,
    conflict_message: Optional[str] = None,
):
    """Apply `projection` with `$set` to the document matching `key`.

    Returns Ok, NotFoundFailure if nothing matched at write time, or a
    ValidationFailure when the write collides with a unique key.
    """
    try:
        matched = repository.update_one(key, projection)
    except DuplicateKeyError:
        return ValidationFailure(conflict_message or f"{label} conflicts with an existing document.")
    except PyMongoError as e:
        return _storage_failure(e)
    if matched == 0:
        return NotFoundFailure(f"{label} was not found.")
    return Ok({"message": f"Successfully updated {label}"})


def create_document(
    repository: Repository,
    model: Type[BaseModel],
    projection: Dict[str, Any],
    label: str,
    conflict_message: Optional[str] = None,
):
    """Build a full document through `model` and insert it.

    Optional fields missing from `projection` take the model's defaults, so
    they are stored as null rather than omitted. The generated id is not
    returned to the caller.
    """
    document = model(**projection)
    try:
        repository.create_document(document)
    except DuplicateKeyError:
        return ValidationFailure(conflict_message or f"{label} already exists in the database.")
    except PyMongoError as e:
        return _storage_failure(e)
    return Created({"message": f"{label} was created."})


def delete_document(repository: Repository, key: Dict[str, Any], label: str):
    try:
        deleted = repository.delete_one(key)
    except PyMongoError as e:
        return _storage_failure(e)
    if deleted == 0:
        return NotFoundFailure(f"{label} wasn't found.")
    return Ok({"message": f"{label} was deleted."})
