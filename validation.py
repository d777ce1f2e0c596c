"""
Field validator registry.

A rule is a callable `(value, current) -> Optional[Failure]` where `current`
is the persisted document being updated (None on creation) and a None result
means the value is accepted. Rules for one field are listed in the order
they must run; the assembler in `pipeline.py` stops at the first failure.

Rules never look up collections on their own: every rule that needs the
database is built with the repository it checks against, and every
key-existence rule is told explicitly whether the key must be new or must
already exist.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from bson import ObjectId
from email_validator import EmailNotValidError, validate_email
from pymongo.errors import PyMongoError

from auth import hash_password, verify_password
from database import Repositories, Repository
from outcomes import Failure, NotFoundFailure, StorageFailure, ValidationFailure
from references import check_references

Rule = Callable[[Any, Optional[dict]], Optional[Failure]]

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")
USERNAME_MIN_LENGTH = 5
DIRECTOR_NAME_MIN_LENGTH = 3
# bcrypt only hashes the first 72 bytes
PASSWORD_MAX_BYTES = 72

# Messages
USERNAME_TOO_SHORT = "The username must be at least 5 characters long."
USERNAME_NOT_ALPHANUMERIC = "The username contains non alphanumeric characters - not allowed."
USERNAME_TAKEN = "The username already exists in the database."
USERNAME_MISSING = "The username provided in the URL does not exist in the database."
PASSWORD_TOO_LONG = "The password must be at most 72 bytes long."
EMAIL_INVALID = "Email does not appear to be valid"
BIRTHDAY_INVALID = "Birthday is not a valid date"
FAVOURITES_MISSING = "One or more favourites do not exist in the database."
TITLE_TAKEN = "A movie with the title '{value}' already exists in the database."
TITLE_MISSING = "A movie with the title '{value}' does not exist in the database."
DIRECTOR_NAME_TOO_SHORT = "The director name must be at least 3 characters long."
DIRECTOR_TAKEN = "A director with the name '{value}' already exists in the database."
DIRECTOR_MISSING = "A director with the name '{value}' does not exist in the database."
GENRE_TAKEN = "A genre with the name '{value}' already exists in the database."
GENRE_MISSING = "A genre with the name '{value}' does not exist in the database."

# Provider-specific canonicalization: (strip dots, sub-address separator)
EMAIL_PROVIDERS = {
    "gmail.com": (True, "+"),
    "googlemail.com": (True, "+"),
    "outlook.com": (False, "+"),
    "hotmail.com": (False, "+"),
    "live.com": (False, "+"),
    "icloud.com": (False, "+"),
    "me.com": (False, "+"),
    "yahoo.com": (False, "-"),
}


class Existence(Enum):
    """Whether a key-existence rule asserts that a key is new or already taken."""
    ASSERT_NEW = "assert_new"
    ASSERT_EXISTING = "assert_existing"


@dataclass
class FieldSpec:
    """
    A recognized payload field.

    Attributes:
        name: Payload key
        rules: Rule chain, run in order
        transform: Applied to the accepted value to produce the stored value
        required: Must be present on creation
        nullable: Accepts an explicit null (stored as null)
    """
    name: str
    rules: List[Rule] = field(default_factory=list)
    transform: Optional[Callable[[Any], Any]] = None
    required: bool = False
    nullable: bool = False


def unchanged_message(name: str) -> str:
    return f"{name} is the same as the current {name}."


# Value helpers

def normalize_email(value: str) -> str:
    """Lower-case an address and apply provider-specific canonicalization.

    Raises EmailNotValidError for syntactically invalid addresses.
    """
    info = validate_email(value, check_deliverability=False)
    local, domain = info.local_part.lower(), info.domain.lower()
    if domain in EMAIL_PROVIDERS:
        strip_dots, separator = EMAIL_PROVIDERS[domain]
        local = local.split(separator, 1)[0]
        if strip_dots:
            local = local.replace(".", "")
    if domain == "googlemail.com":
        domain = "gmail.com"
    return f"{local}@{domain}"


def parse_date(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime string into a midnight datetime."""
    if isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return datetime(parsed.year, parsed.month, parsed.day)


def to_object_ids(values: Sequence[str]) -> List[ObjectId]:
    return [ObjectId(v) for v in values]


# Shape rules

def is_string(name: str) -> Rule:
    def rule(value, current):
        if not isinstance(value, str):
            return ValidationFailure(f"{name} must be a string.")
        if not value.strip():
            return ValidationFailure(f"{name} cannot be empty.")
        return None
    return rule


def is_boolean(name: str) -> Rule:
    def rule(value, current):
        if not isinstance(value, bool):
            return ValidationFailure(f"{name} must be true or false.")
        return None
    return rule


def is_list_of_strings(name: str) -> Rule:
    def rule(value, current):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            return ValidationFailure(f"{name} must be a list of strings.")
        return None
    return rule


def is_object(name: str, keys: Sequence[str]) -> Rule:
    """An embedded descriptor: a mapping restricted to `keys` with string values."""
    def rule(value, current):
        if not isinstance(value, dict):
            return ValidationFailure(f"{name} must be an object.")
        unknown = set(value) - set(keys)
        if unknown:
            return ValidationFailure(f"{name} contains unknown fields.")
        for key in keys:
            if value.get(key) is not None and not isinstance(value[key], str):
                return ValidationFailure(f"{name}.{key} must be a string.")
        return None
    return rule


def min_length(length: int, message: str) -> Rule:
    def rule(value, current):
        if len(value) < length:
            return ValidationFailure(message)
        return None
    return rule


def max_bytes(length: int, message: str) -> Rule:
    def rule(value, current):
        if len(value.encode("utf-8")) > length:
            return ValidationFailure(message)
        return None
    return rule


def matches(pattern, message: str) -> Rule:
    def rule(value, current):
        if not pattern.fullmatch(value):
            return ValidationFailure(message)
        return None
    return rule


def is_email(message: str = EMAIL_INVALID) -> Rule:
    def rule(value, current):
        try:
            normalize_email(value)
        except EmailNotValidError:
            return ValidationFailure(message)
        return None
    return rule


def is_date(message: str) -> Rule:
    def rule(value, current):
        if parse_date(value) is None:
            return ValidationFailure(message)
        return None
    return rule


# Database rules

def key_existence(repository: Repository, key: str, mode: Existence, taken_message: str,
                  missing_message: str) -> Rule:
    """
    Check a natural key against its collection.

    With Existence.ASSERT_NEW the key must not be stored yet (creating or
    renaming). With Existence.ASSERT_EXISTING it must be, and a miss is
    reported as NotFound since the key names the target of the request.
    """
    def rule(value, current):
        try:
            found = repository.exists({key: value})
        except PyMongoError as e:
            return StorageFailure(f"Database error: {e}")
        if mode is Existence.ASSERT_NEW and found:
            return ValidationFailure(taken_message.format(value=value))
        if mode is Existence.ASSERT_EXISTING and not found:
            return NotFoundFailure(missing_message.format(value=value))
        return None
    return rule


def references(repository: Repository, message: str) -> Rule:
    def rule(value, current):
        return check_references(value, repository, message)
    return rule


# "Changed from current" rules, only used on updates

def value_changed(name: str) -> Rule:
    def rule(value, current):
        if value == (current or {}).get(name):
            return ValidationFailure(unchanged_message(name))
        return None
    return rule


def email_changed() -> Rule:
    def rule(value, current):
        stored = (current or {}).get("email")
        try:
            candidate = normalize_email(value)
        except EmailNotValidError:
            # Left to is_email
            return None
        if value == stored or candidate == stored:
            return ValidationFailure(unchanged_message("email"))
        return None
    return rule


def password_changed() -> Rule:
    def rule(value, current):
        if verify_password(value, (current or {}).get("password", "")):
            return ValidationFailure(unchanged_message("password"))
        return None
    return rule


def date_changed(name: str) -> Rule:
    def rule(value, current):
        stored = (current or {}).get(name)
        candidate = parse_date(value)
        if candidate is None:
            # Malformed dates are rejected by is_date
            return None
        if stored is not None and candidate.date() == stored.date():
            return ValidationFailure(unchanged_message(name))
        return None
    return rule


def favourites_changed() -> Rule:
    """Order and duplicates matter: same length and same id at every index is unchanged."""
    def rule(value, current):
        stored = [str(movie_id) for movie_id in (current or {}).get("favourites") or []]
        if len(value) != len(stored):
            return None
        for new_id, old_id in zip(value, stored):
            if new_id != old_id:
                return None
        return ValidationFailure(unchanged_message("favourites"))
    return rule


# Per-resource field tables, in validation priority order

def username_rules(users: Repository, mode: Existence) -> List[Rule]:
    return [
        is_string("username"),
        min_length(USERNAME_MIN_LENGTH, USERNAME_TOO_SHORT),
        matches(USERNAME_PATTERN, USERNAME_NOT_ALPHANUMERIC),
        key_existence(users, "username", mode, USERNAME_TAKEN, USERNAME_MISSING),
    ]


def password_rules() -> List[Rule]:
    return [is_string("password"), max_bytes(PASSWORD_MAX_BYTES, PASSWORD_TOO_LONG)]


def title_rules(movies: Repository, mode: Existence) -> List[Rule]:
    return [
        is_string("title"),
        key_existence(movies, "title", mode, TITLE_TAKEN, TITLE_MISSING),
    ]


def director_name_rules(directors: Repository, mode: Existence) -> List[Rule]:
    return [
        is_string("name"),
        min_length(DIRECTOR_NAME_MIN_LENGTH, DIRECTOR_NAME_TOO_SHORT),
        key_existence(directors, "name", mode, DIRECTOR_TAKEN, DIRECTOR_MISSING),
    ]


def genre_name_rules(genres: Repository, mode: Existence) -> List[Rule]:
    return [
        is_string("name"),
        key_existence(genres, "name", mode, GENRE_TAKEN, GENRE_MISSING),
    ]


def user_create_fields(repos: Repositories) -> List[FieldSpec]:
    return [
        FieldSpec("username", username_rules(repos.users, Existence.ASSERT_NEW), required=True),
        FieldSpec("password", password_rules(), transform=hash_password, required=True),
        FieldSpec("email", [is_string("email"), is_email()], transform=normalize_email, required=True),
        FieldSpec("birthday", [is_date(BIRTHDAY_INVALID)], transform=parse_date, nullable=True),
        FieldSpec(
            "favourites",
            [is_list_of_strings("favourites"), references(repos.movies, FAVOURITES_MISSING)],
            transform=to_object_ids,
        ),
    ]


def user_update_fields(repos: Repositories) -> List[FieldSpec]:
    return [
        FieldSpec(
            "username",
            [is_string("username"), value_changed("username")]
            + username_rules(repos.users, Existence.ASSERT_NEW)[1:],
        ),
        FieldSpec("email", [is_string("email"), email_changed(), is_email()], transform=normalize_email),
        FieldSpec("password", password_rules() + [password_changed()], transform=hash_password),
        FieldSpec("birthday", [date_changed("birthday"), is_date(BIRTHDAY_INVALID)], transform=parse_date,
                  nullable=True),
        FieldSpec(
            "favourites",
            [
                is_list_of_strings("favourites"),
                favourites_changed(),
                references(repos.movies, FAVOURITES_MISSING),
            ],
            transform=to_object_ids,
        ),
    ]


def movie_create_fields(repos: Repositories) -> List[FieldSpec]:
    return [
        FieldSpec("title", title_rules(repos.movies, Existence.ASSERT_NEW), required=True),
        FieldSpec("description", [is_string("description")], required=True),
        FieldSpec("genre", [is_object("genre", ("name", "description"))], nullable=True),
        FieldSpec("director", [is_object("director", ("name", "bio"))], nullable=True),
        FieldSpec("actors", [is_list_of_strings("actors")]),
        FieldSpec("imagePath", [is_string("imagePath")], nullable=True),
        FieldSpec("featured", [is_boolean("featured")], nullable=True),
    ]


def director_create_fields(repos: Repositories) -> List[FieldSpec]:
    return [
        FieldSpec("name", director_name_rules(repos.directors, Existence.ASSERT_NEW), required=True),
        FieldSpec("bio", [is_string("bio")], required=True),
        FieldSpec("birthday", [is_date("birthday is not a valid date")], transform=parse_date, nullable=True),
        FieldSpec("deathday", [is_date("deathday is not a valid date")], transform=parse_date, nullable=True),
    ]


def genre_create_fields(repos: Repositories) -> List[FieldSpec]:
    return [
        FieldSpec("name", genre_name_rules(repos.genres, Existence.ASSERT_NEW), required=True),
        FieldSpec("description", [is_string("description")], required=True),
    ]
