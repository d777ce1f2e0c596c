import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson.objectid import ObjectId
from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.security import OAuth2PasswordRequestForm
from pymongo.errors import PyMongoError

import database
import settings
from auth import auth_current_user, authenticate, create_access_token
from database import Repositories, Repository, ensure_indexes, get_repositories
from logger import LOGGER_NAME, configure_logging, create_logger
from mutations import apply_update, create_document, delete_document
from outcomes import (
    AuthorizationFailure,
    ClientInputError,
    Failure,
    NotFoundFailure,
    Ok,
    StorageFailure,
    ValidationFailure,
)
from pipeline import EMPTY_BODY, run_rules, validate_payload
from schemas import Director, Genre, Movie, TokenResponse, User
from validation import (
    DIRECTOR_TAKEN,
    GENRE_TAKEN,
    TITLE_TAKEN,
    USERNAME_TAKEN,
    Existence,
    director_create_fields,
    director_name_rules,
    genre_create_fields,
    genre_name_rules,
    movie_create_fields,
    title_rules,
    user_create_fields,
    user_update_fields,
    username_rules,
)

configure_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        try:
            ensure_indexes(database.db)
        except PyMongoError as e:
            # Requests still answer with per-request storage failures
            logging.getLogger(LOGGER_NAME).error("Could not create indexes: %s", e)
    yield


app = FastAPI(title="myflix API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

QUERY_FIELDS = {"limit"}
UNKNOWN_QUERY_FIELDS = "Request contains unknown fields."
INVALID_REQUEST = "Request is not valid."


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger = create_logger(request.headers, f"{request.method} {request.url.path}")
    request.state.logger = logger
    logger.log_request_start(path=request.url.path, method=request.method)
    try:
        response = await call_next(request)
    except Exception as e:
        logger.log_unexpected_error(error_type=type(e).__name__, error_message=str(e))
        response = PlainTextResponse("Something broke!", status_code=500)
    logger.log_request_complete(status_code=response.status_code)
    response.headers["X-Request-ID"] = logger.correlation_id
    return response


# Utilities

def _plain(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def to_str_id(doc):
    if not doc:
        return doc
    d = _plain(dict(doc))
    if "_id" in d:
        d["id"] = d.pop("_id")
    d.pop("password", None)
    return d


def respond(request: Request, outcome) -> JSONResponse:
    """Translate an outcome into the HTTP response. The only place that does."""
    logger = request.state.logger
    if isinstance(outcome, Failure):
        message = outcome.message
        if isinstance(outcome, (ValidationFailure, ClientInputError)):
            logger.log_validation_error(message)
        else:
            logger.log_domain_error(outcome.code, message)
        if isinstance(outcome, StorageFailure):
            # Driver details stay in the log
            message = "Database error."
        return JSONResponse(status_code=outcome.status_code, content={"code": outcome.code, "message": message})
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


@app.exception_handler(RequestValidationError)
async def request_validation_failed(request: Request, exc: RequestValidationError):
    """Malformed JSON, wrong body shape or bad query types, reported like any validation failure."""
    errors = exc.errors()
    if not errors:
        return respond(request, ValidationFailure(INVALID_REQUEST))
    location = ".".join(str(part) for part in errors[0].get("loc", ())[1:])
    message = errors[0].get("msg", INVALID_REQUEST)
    return respond(request, ValidationFailure(f"{location}: {message}" if location else message))


def check_query(request: Request) -> Optional[Failure]:
    if any(name not in QUERY_FIELDS for name in request.query_params):
        return ValidationFailure(UNKNOWN_QUERY_FIELDS)
    return None


def list_documents(request: Request, repository: Repository, limit: Optional[int]):
    failure = check_query(request)
    if failure:
        return failure
    try:
        docs = repository.get_documents(limit=limit)
    except PyMongoError as e:
        return StorageFailure(f"Database error: {e}")
    return Ok([to_str_id(d) for d in docs])


def find_document(request: Request, repository: Repository, key: str, value: str, rules: List):
    failure = check_query(request) or run_rules(rules, value)
    if failure:
        return failure
    try:
        doc = repository.find_one({key: value})
    except PyMongoError as e:
        return StorageFailure(f"Database error: {e}")
    if doc is None:
        return NotFoundFailure(f"{value} wasn't found.")
    return Ok(to_str_id(doc))


def check_owner(username: str, current_user: dict, action: str) -> Optional[Failure]:
    if current_user.get("username") != username:
        return AuthorizationFailure(f"You are not allowed to {action} this user!")
    return None


@app.get("/")
def read_root():
    return {"message": "Welcome to myflix!"}


# Auth

@app.post("/login", response_model=TokenResponse)
def login(form_data: OAuth2PasswordRequestForm = Depends(), repos: Repositories = Depends(get_repositories)):
    user = authenticate(repos, form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=400, detail="Invalid credentials")
    token = create_access_token({"sub": user["username"]})
    return {"access_token": token, "token_type": "bearer", "username": user["username"]}


# Movies

@app.get("/movies")
def list_movies(request: Request, limit: Optional[int] = Query(None, gt=0),
                repos: Repositories = Depends(get_repositories)):
    return respond(request, list_documents(request, repos.movies, limit))


@app.get("/movies/{title}")
def get_movie(title: str, request: Request, repos: Repositories = Depends(get_repositories)):
    rules = title_rules(repos.movies, Existence.ASSERT_EXISTING)
    return respond(request, find_document(request, repos.movies, "title", title, rules))


@app.post("/movies")
def create_movie(request: Request, payload: Optional[Dict[str, Any]] = Body(None),
                 current_user=Depends(auth_current_user), repos: Repositories = Depends(get_repositories)):
    result = validate_payload(payload, movie_create_fields(repos), partial=False)
    if isinstance(result, Failure):
        return respond(request, result)
    conflict = TITLE_TAKEN.format(value=result["title"])
    return respond(request, create_document(repos.movies, Movie, result, f"Movie {result['title']}", conflict))


# Directors

@app.get("/directors")
def list_directors(request: Request, limit: Optional[int] = Query(None, gt=0),
                   repos: Repositories = Depends(get_repositories)):
    return respond(request, list_documents(request, repos.directors, limit))


@app.get("/directors/{name}")
def get_director(name: str, request: Request, repos: Repositories = Depends(get_repositories)):
    rules = director_name_rules(repos.directors, Existence.ASSERT_EXISTING)
    return respond(request, find_document(request, repos.directors, "name", name, rules))


@app.post("/directors")
def create_director(request: Request, payload: Optional[Dict[str, Any]] = Body(None),
                    current_user=Depends(auth_current_user), repos: Repositories = Depends(get_repositories)):
    result = validate_payload(payload, director_create_fields(repos), partial=False)
    if isinstance(result, Failure):
        return respond(request, result)
    conflict = DIRECTOR_TAKEN.format(value=result["name"])
    return respond(request, create_document(repos.directors, Director, result, f"Director {result['name']}",
                                            conflict))


# Genres

@app.get("/genres")
def list_genres(request: Request, limit: Optional[int] = Query(None, gt=0),
                repos: Repositories = Depends(get_repositories)):
    return respond(request, list_documents(request, repos.genres, limit))


@app.get("/genres/{name}")
def get_genre(name: str, request: Request, repos: Repositories = Depends(get_repositories)):
    rules = genre_name_rules(repos.genres, Existence.ASSERT_EXISTING)
    return respond(request, find_document(request, repos.genres, "name", name, rules))


@app.post("/genres")
def create_genre(request: Request, payload: Optional[Dict[str, Any]] = Body(None),
                 current_user=Depends(auth_current_user), repos: Repositories = Depends(get_repositories)):
    result = validate_payload(payload, genre_create_fields(repos), partial=False)
    if isinstance(result, Failure):
        return respond(request, result)
    conflict = GENRE_TAKEN.format(value=result["name"])
    return respond(request, create_document(repos.genres, Genre, result, f"Genre {result['name']}", conflict))


# Users

@app.get("/users/{username}")
def get_user(username: str, request: Request, repos: Repositories = Depends(get_repositories)):
    rules = username_rules(repos.users, Existence.ASSERT_EXISTING)
    return respond(request, find_document(request, repos.users, "username", username, rules))


@app.post("/users")
def create_user(request: Request, payload: Optional[Dict[str, Any]] = Body(None),
                repos: Repositories = Depends(get_repositories)):
    result = validate_payload(payload, user_create_fields(repos), partial=False)
    if isinstance(result, Failure):
        return respond(request, result)
    return respond(request, create_document(repos.users, User, result, f"User {result['username']}",
                                            USERNAME_TAKEN))


def update_user_outcome(username: str, payload: Optional[Dict[str, Any]], current_user: dict,
                        repos: Repositories):
    if not payload:
        return ClientInputError(EMPTY_BODY)
    failure = check_owner(username, current_user, "update") \
        or run_rules(username_rules(repos.users, Existence.ASSERT_EXISTING), username)
    if failure:
        return failure
    result = validate_payload(payload, user_update_fields(repos), current=current_user)
    if isinstance(result, Failure):
        return result
    return apply_update(repos.users, {"username": username}, result, f"user {username}", USERNAME_TAKEN)


def delete_user_outcome(username: str, current_user: dict, repos: Repositories):
    failure = check_owner(username, current_user, "delete") \
        or run_rules(username_rules(repos.users, Existence.ASSERT_EXISTING), username)
    if failure:
        return failure
    return delete_document(repos.users, {"username": username}, username)


@app.patch("/users/{username}")
def update_user(username: str, request: Request, payload: Optional[Dict[str, Any]] = Body(None),
                current_user=Depends(auth_current_user), repos: Repositories = Depends(get_repositories)):
    return respond(request, update_user_outcome(username, payload, current_user, repos))


@app.delete("/users/{username}")
def delete_user(username: str, request: Request, current_user=Depends(auth_current_user),
                repos: Repositories = Depends(get_repositories)):
    return respond(request, delete_user_outcome(username, current_user, repos))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
