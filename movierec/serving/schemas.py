"""
Pydantic schemas for the HTTP API. Fields are snake_case in Python and
camelCase on the wire.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(CamelModel):
    status: Literal["ok", "loading"]
    models: List[str]


class ModelsResponse(CamelModel):
    models: List[str]


class MovieResponse(CamelModel):
    id: int
    title: str
    genres: List[str]


class RecommendationItem(CamelModel):
    item_id: int
    score: float
    explanation: Optional[str] = None
    title: Optional[str] = None
    genres: Optional[List[str]] = None


class RecommendationsResponse(CamelModel):
    user_id: int
    model: str
    recommendations: List[RecommendationItem]


class SearchResponse(CamelModel):
    results: List[MovieResponse]


class RandomUsersResponse(CamelModel):
    users: List[int]


class NextUserIdResponse(CamelModel):
    next_user_id: int


class RatingRequest(CamelModel):
    user_id: int
    movie_id: int
    rating: float


class RatingRecord(CamelModel):
    user_id: int
    movie_id: int
    rating: float
    timestamp: int


class RatingResponse(CamelModel):
    success: bool = True
    action: Literal["added", "updated"]
    rating: RatingRecord


class RatingLookupResponse(CamelModel):
    rated: bool
    rating: Optional[float] = None
    timestamp: Optional[int] = None


class ErrorResponse(CamelModel):
    error: str
