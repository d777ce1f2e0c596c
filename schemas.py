"""
Database Schemas

MongoDB collection schemas as Pydantic models. Documents are always built
through these models before insertion, so optional fields the caller left
out are stored as null instead of being omitted.

Each Pydantic model represents a collection in your database.
Model name is converted to lowercase for the collection name:
- User -> "user" collection
- Movie -> "movie" collection
- Director -> "director" collection
- Genre -> "genre" collection
"""

from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    username: str = Field(..., description="Unique alphanumeric login name")
    password: str = Field(..., description="BCrypt hashed password")
    email: str = Field(..., description="Normalized email address")
    birthday: Optional[datetime] = Field(None, description="Date of birth (midnight UTC)")
    favourites: List[ObjectId] = Field(default_factory=list, description="Favourite movie ids, in order")


class GenreInfo(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class DirectorInfo(BaseModel):
    name: Optional[str] = None
    bio: Optional[str] = None


class Movie(BaseModel):
    """
    Movies collection schema
    Collection name: "movie"
    """
    title: str = Field(..., description="Unique movie title")
    description: str = Field(..., description="Synopsis")
    genre: Optional[GenreInfo] = Field(None, description="Embedded genre descriptor")
    director: Optional[DirectorInfo] = Field(None, description="Embedded director descriptor")
    actors: List[str] = Field(default_factory=list, description="Cast, in billing order")
    imagePath: Optional[str] = Field(None, description="Poster image URL or path")
    featured: Optional[bool] = Field(None, description="Whether to highlight on homepage")


class Director(BaseModel):
    """
    Directors collection schema
    Collection name: "director"
    """
    name: str = Field(..., description="Unique director name")
    bio: str = Field(..., description="Short biography")
    birthday: Optional[datetime] = None
    deathday: Optional[datetime] = None


class Genre(BaseModel):
    """
    Genres collection schema
    Collection name: "genre"
    """
    name: str = Field(..., description="Unique genre name")
    description: str = Field(..., description="What the genre is about")


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    username: str
