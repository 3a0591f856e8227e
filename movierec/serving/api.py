"""
FastAPI application exposing a RecommenderRegistry.

Endpoints:
- GET /health: Service status and registered models
- GET /models: Registered model names
- GET /recommendations/{userId}: Top-N recommendations of one model
- GET /movies/{movieId}: Movie details
- GET /movies/search/{query}: Title search
- GET /users/random: Random existing user ids
- GET /users/next-id: Next free user id
- GET /ratings/{userId}/{movieId}: A user's rating of a movie
- POST /ratings: Add or update a rating

Usage:
    python -m movierec.main
"""

import asyncio
import logging
import threading
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from movierec import __version__
from movierec.config import Settings
from movierec.errors import DatasetUnavailable, InvalidInput, NotFound
from movierec.serving.registry import RecommenderRegistry
from movierec.serving.schemas import (
    ErrorResponse,
    HealthResponse,
    ModelsResponse,
    MovieResponse,
    NextUserIdResponse,
    RandomUsersResponse,
    RatingLookupResponse,
    RatingRecord,
    RatingRequest,
    RatingResponse,
    RecommendationItem,
    RecommendationsResponse,
    SearchResponse,
)

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 5.0

Bootstrap = Callable[[RecommenderRegistry], None]


class RequestTimeout(Exception):
    pass


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def _parse_id(value: str, what: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise InvalidInput(f"Invalid {what} ID") from None


def _movie_response(movie) -> MovieResponse:
    return MovieResponse(id=movie.id, title=movie.title, genres=list(movie.genres))


def create_app(
    registry: RecommenderRegistry,
    settings: Optional[Settings] = None,
    bootstrap: Optional[Bootstrap] = None,
) -> FastAPI:
    """Build the HTTP application around ``registry``.

    If ``bootstrap`` is given it runs on a background thread when the app
    starts; data endpoints answer 503 until it has attached a dataset.
    """
    settings = settings or Settings()

    def _run_bootstrap() -> None:
        try:
            bootstrap(registry)
        except Exception:
            logger.exception("Bootstrap failed; the service keeps answering 503")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting recommendation service...")
        if bootstrap is not None:
            thread = threading.Thread(target=_run_bootstrap, name="movierec-bootstrap", daemon=True)
            thread.start()
        yield
        logger.info("Recommendation service stopped")

    app = FastAPI(
        title="Movie Recommender API",
        description="Personalized movie recommendations from several models",
        version=__version__,
        lifespan=lifespan,
        responses={code: {"model": ErrorResponse} for code in (400, 404, 503, 504)},
    )
    app.state.registry = registry
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_slow_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        if process_time > SLOW_REQUEST_SECONDS:
            logger.warning(
                "Slow request: %s %s took %.2fs",
                request.method,
                request.url.path,
                process_time,
            )
        return response

    @app.exception_handler(InvalidInput)
    async def invalid_input_handler(request: Request, exc: InvalidInput):
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return _error(400, message)

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        return _error(404, str(exc))

    @app.exception_handler(DatasetUnavailable)
    async def unavailable_handler(request: Request, exc: DatasetUnavailable):
        return _error(503, str(exc))

    @app.exception_handler(RequestTimeout)
    async def timeout_handler(request: Request, exc: RequestTimeout):
        logger.error("Request timeout: %s %s", request.method, request.url.path)
        return _error(504, "Request timeout. Please try again.")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    async def _call(fn, *args):
        try:
            return await asyncio.wait_for(
                run_in_threadpool(fn, *args),
                timeout=settings.request_timeout,
            )
        except asyncio.TimeoutError:
            raise RequestTimeout() from None

    @app.get("/health", response_model=HealthResponse)
    async def health():
        status = "ok" if registry.is_ready else "loading"
        return HealthResponse(status=status, models=registry.model_names())

    @app.get("/models", response_model=ModelsResponse)
    async def models():
        return ModelsResponse(models=registry.model_names())

    @app.get(
        "/recommendations/{user_id}",
        response_model=RecommendationsResponse,
        response_model_exclude_none=True,
    )
    async def recommendations(
        user_id: str,
        model: Optional[str] = Query(None),
        n: int = Query(10),
    ):
        uid = _parse_id(user_id, "user")
        names = registry.model_names()
        model_name = model or (names[0] if names else "")

        recs = await _call(registry.recommend, uid, model_name, n)
        return RecommendationsResponse(
            user_id=uid,
            model=model_name,
            recommendations=[
                RecommendationItem(
                    item_id=r.item_id,
                    score=r.score,
                    explanation=r.explanation,
                    title=r.title,
                    genres=list(r.genres) if r.genres is not None else None,
                )
                for r in recs
            ],
        )

    @app.get("/movies/search/{query}", response_model=SearchResponse)
    async def search_movies(query: str, limit: int = Query(20)):
        movies = registry.search_movies(query, limit)
        return SearchResponse(results=[_movie_response(m) for m in movies])

    @app.get("/movies/{movie_id}", response_model=MovieResponse)
    async def get_movie(movie_id: str):
        return _movie_response(registry.get_movie(_parse_id(movie_id, "movie")))

    @app.get("/users/random", response_model=RandomUsersResponse)
    async def random_users(count: int = Query(10)):
        return RandomUsersResponse(users=registry.random_users(count))

    @app.get("/users/next-id", response_model=NextUserIdResponse)
    async def next_user_id():
        return NextUserIdResponse(next_user_id=registry.next_user_id())

    @app.get(
        "/ratings/{user_id}/{movie_id}",
        response_model=RatingLookupResponse,
        response_model_exclude_none=True,
    )
    async def get_rating(user_id: str, movie_id: str):
        interaction = registry.get_rating(_parse_id(user_id, "user"), _parse_id(movie_id, "movie"))
        if interaction is None:
            return RatingLookupResponse(rated=False)
        return RatingLookupResponse(
            rated=True,
            rating=interaction.weight,
            timestamp=interaction.timestamp,
        )

    @app.post("/ratings", response_model=RatingResponse)
    async def post_rating(body: RatingRequest):
        action, interaction = await _call(
            registry.ingest_rating, body.user_id, body.movie_id, body.rating
        )
        return RatingResponse(
            action=action,
            rating=RatingRecord(
                user_id=interaction.user_id,
                movie_id=interaction.item_id,
                rating=interaction.weight,
                timestamp=interaction.timestamp or 0,
            ),
        )

    return app
