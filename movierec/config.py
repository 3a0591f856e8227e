from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

from movierec.errors import InvalidInput

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise InvalidInput(f"{name} must be an integer, got {value!r}") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise InvalidInput(f"{name} must be a number, got {value!r}") from None


@dataclass(frozen=True, kw_only=True)
class Settings:
    dataset_path: Path = Path("./ml-1m")
    models_dir: Path = Path("./data/models")

    host: str = "127.0.0.1"
    port: int = 3000
    cors_origins: List[str] = field(default_factory=lambda: DEFAULT_CORS_ORIGINS.split(","))
    request_timeout: float = 30.0

    train_jobs: int = 1
    # upper bounds applied to model parameters at construction
    max_walks: int = 1000
    max_iterations: int = 50

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Settings":
        """Read settings from the environment, after loading a ``.env`` file if present."""
        load_dotenv(dotenv_path=env_file)

        return cls(
            dataset_path=Path(os.getenv("MOVIELENS_DATASET_PATH", "./ml-1m")),
            models_dir=Path(os.getenv("MODELS_DIR", "./data/models")),
            host=os.getenv("HOST", "127.0.0.1"),
            port=_env_int("PORT", 3000),
            cors_origins=[
                origin.strip()
                for origin in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
                if origin.strip()
            ],
            request_timeout=_env_float("REQUEST_TIMEOUT", 30.0),
            train_jobs=_env_int("TRAIN_JOBS", 1),
            max_walks=_env_int("MAX_WALKS", 1000),
            max_iterations=_env_int("MAX_ITERATIONS", 50),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
