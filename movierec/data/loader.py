from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Set

import numpy as np
import pandas as pd

from movierec.errors import MalformedRecord

logger = logging.getLogger(__name__)

RATING_COLUMNS = ["UserID", "MovieID", "Rating", "Timestamp"]

RATINGS_FILE = "ratings.dat"
MOVIES_FILE = "movies.dat"


@dataclass(frozen=True, kw_only=True)
class Movie:
    id: int
    title: str
    genres: tuple[str, ...] = ()


@dataclass(frozen=True, kw_only=True)
class Interaction:
    user_id: int
    item_id: int
    weight: float
    timestamp: int | None = None


@dataclass(kw_only=True)
class Dataset:
    interactions: pd.DataFrame
    movies: Dict[int, Movie] = field(default_factory=dict)
    users: Set[int] = field(default_factory=set)


def empty_ratings() -> pd.DataFrame:
    return pd.DataFrame({
        "UserID": pd.Series([], dtype=np.int64),
        "MovieID": pd.Series([], dtype=np.int64),
        "Rating": pd.Series([], dtype=np.float64),
        "Timestamp": pd.Series([], dtype=np.int64),
    })


def interactions_to_frame(interactions: Iterable[Interaction]) -> pd.DataFrame:
    """Build a ratings frame from Interaction records (missing timestamps become 0)."""
    rows = [
        (it.user_id, it.item_id, float(it.weight), int(it.timestamp or 0))
        for it in interactions
    ]
    if not rows:
        return empty_ratings()
    frame = pd.DataFrame(rows, columns=RATING_COLUMNS)
    return frame.astype({"UserID": np.int64, "MovieID": np.int64, "Rating": np.float64, "Timestamp": np.int64})


def _parse_int(value: str, source: str, line_no: int, field_name: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise MalformedRecord(source, line_no, f"non-numeric {field_name}: {value!r}") from None


def _parse_float(value: str, source: str, line_no: int, field_name: str) -> float:
    try:
        parsed = float(value.strip())
    except ValueError:
        raise MalformedRecord(source, line_no, f"non-numeric {field_name}: {value!r}") from None
    if not np.isfinite(parsed):
        raise MalformedRecord(source, line_no, f"non-finite {field_name}: {value!r}")
    return parsed


def parse_ratings(lines: Iterable[str], source: str = RATINGS_FILE) -> pd.DataFrame:
    """Parse ``UserID::MovieID::Rating::Timestamp`` records into a ratings frame.

    Parameters
    ----------
    lines : Iterable[str]
        Raw records, one per line. Blank lines are skipped.
    source : str
        Name used in error messages.

    Returns
    -------
    pd.DataFrame
        Columns UserID, MovieID, Rating, Timestamp (seconds since epoch).

    Raises
    ------
    MalformedRecord
        On a field-count mismatch, a non-numeric id or rating, or a
        non-empty, non-numeric timestamp. An empty timestamp is stored as 0.
    """
    users, items, weights, stamps = [], [], [], []
    for line_no, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line:
            continue
        parts = line.split("::")
        if len(parts) != 4:
            raise MalformedRecord(source, line_no, f"expected 4 fields, got {len(parts)}")
        users.append(_parse_int(parts[0], source, line_no, "user id"))
        items.append(_parse_int(parts[1], source, line_no, "item id"))
        weights.append(_parse_float(parts[2], source, line_no, "rating"))
        # missing timestamp
        stamps.append(_parse_int(parts[3], source, line_no, "timestamp") if parts[3].strip() else 0)

    if not users:
        return empty_ratings()

    return pd.DataFrame({
        "UserID": np.asarray(users, dtype=np.int64),
        "MovieID": np.asarray(items, dtype=np.int64),
        "Rating": np.asarray(weights, dtype=np.float64),
        "Timestamp": np.asarray(stamps, dtype=np.int64),
    })


def parse_movies(lines: Iterable[str], source: str = MOVIES_FILE) -> Dict[int, Movie]:
    """Parse ``MovieID::Title::Genre1|Genre2|...`` records into an id -> Movie map."""
    movies: Dict[int, Movie] = {}
    for line_no, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line:
            continue
        parts = line.split("::")
        if len(parts) != 3:
            raise MalformedRecord(source, line_no, f"expected 3 fields, got {len(parts)}")
        movie_id = _parse_int(parts[0], source, line_no, "item id")
        genres = tuple(g for g in parts[2].split("|") if g)
        movies[movie_id] = Movie(id=movie_id, title=parts[1], genres=genres)
    return movies


def build_dataset(ratings: pd.DataFrame, movies: Dict[int, Movie]) -> Dataset:
    return Dataset(
        interactions=ratings,
        movies=movies,
        users=set(ratings["UserID"].astype(int).tolist()),
    )


def dataset_exists(data_dir: str | Path) -> bool:
    data_dir = Path(data_dir)
    return (data_dir / RATINGS_FILE).exists() and (data_dir / MOVIES_FILE).exists()


def load_dataset(data_dir: str | Path, encoding: str = "latin-1") -> Dataset:
    """Load a MovieLens-1M style directory (ratings.dat + movies.dat)."""
    data_dir = Path(data_dir)
    ratings_path = data_dir / RATINGS_FILE
    movies_path = data_dir / MOVIES_FILE

    with open(ratings_path, encoding=encoding) as f:
        ratings = parse_ratings(f, source=str(ratings_path))
    with open(movies_path, encoding=encoding) as f:
        movies = parse_movies(f, source=str(movies_path))

    dataset = build_dataset(ratings, movies)
    logger.info(
        "Loaded %d interactions, %d users, %d movies from %s",
        len(dataset.interactions),
        len(dataset.users),
        len(dataset.movies),
        data_dir,
    )
    return dataset
