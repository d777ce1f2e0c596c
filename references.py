"""
Cross-reference checks.

Verifies that ids embedded in one document identify existing documents in
another collection, e.g. the movie ids in a user's favourites list.
"""

from typing import Any, Iterable, Optional, Union

from bson import ObjectId
from pymongo.errors import PyMongoError

from database import Repository
from outcomes import Failure, StorageFailure, ValidationFailure


def check_references(
    ids: Union[Any, Iterable[Any]],
    repository: Repository,
    message: str,
) -> Optional[Failure]:
    """
    Check that one id, or every id in a list, exists in `repository`.

    Ids are checked in order and the check stops at the first id that is
    either not a valid ObjectId or not present in the collection.

    Args:
        ids: A single id or a list of ids (strings or ObjectIds)
        repository: Collection the ids must belong to
        message: Message reported for the first invalid or missing id

    Returns:
        None when every id resolves, a ValidationFailure carrying `message`
        otherwise, or a StorageFailure if the lookup itself raised.
    """
    candidates = ids if isinstance(ids, (list, tuple)) else [ids]
    for candidate in candidates:
        if not ObjectId.is_valid(candidate):
            return ValidationFailure(message)
        try:
            found = repository.exists({"_id": ObjectId(candidate)})
        except PyMongoError as e:
            return StorageFailure(f"Database error: {e}")
        if not found:
            return ValidationFailure(message)
    return None
