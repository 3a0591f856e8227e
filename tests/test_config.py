from pathlib import Path

import pytest

from movierec.config import Settings
from movierec.errors import InvalidInput

ENV_KEYS = [
    "MOVIELENS_DATASET_PATH",
    "MODELS_DIR",
    "HOST",
    "PORT",
    "CORS_ORIGINS",
    "REQUEST_TIMEOUT",
    "TRAIN_JOBS",
    "MAX_WALKS",
    "MAX_ITERATIONS",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    # set-then-delete so teardown also removes values loaded from .env files
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return monkeypatch


def test_defaults(clean_env, tmp_path):
    # act
    settings = Settings.from_env(tmp_path / "missing.env")

    # assert
    assert settings == Settings()
    assert settings.port == 3000
    assert "http://localhost:5173" in settings.cors_origins


def test_environment_overrides(clean_env, tmp_path):
    # arrange
    clean_env.setenv("PORT", "8080")
    clean_env.setenv("CORS_ORIGINS", "http://a.test, http://b.test,")
    clean_env.setenv("MAX_WALKS", "5")
    clean_env.setenv("REQUEST_TIMEOUT", "2.5")
    clean_env.setenv("LOG_LEVEL", "debug")

    # act
    settings = Settings.from_env(tmp_path / "missing.env")

    # assert
    assert settings.port == 8080
    assert settings.cors_origins == ["http://a.test", "http://b.test"]
    assert settings.max_walks == 5
    assert settings.request_timeout == pytest.approx(2.5)
    assert settings.log_level == "DEBUG"


def test_dotenv_file(clean_env, tmp_path):
    # arrange
    env_file = tmp_path / ".env"
    env_file.write_text("MOVIELENS_DATASET_PATH=/data/ml-1m\nTRAIN_JOBS=4\n", encoding="utf-8")

    # act
    settings = Settings.from_env(env_file)

    # assert
    assert settings.dataset_path == Path("/data/ml-1m")
    assert settings.train_jobs == 4


def test_process_environment_wins_over_dotenv(clean_env, tmp_path):
    # arrange
    env_file = tmp_path / ".env"
    env_file.write_text("PORT=9000\n", encoding="utf-8")
    clean_env.setenv("PORT", "7000")

    # act / assert
    assert Settings.from_env(env_file).port == 7000


@pytest.mark.parametrize("key, value", [("PORT", "eighty"), ("REQUEST_TIMEOUT", "soon")])
def test_invalid_numbers(clean_env, tmp_path, key, value):
    # arrange
    clean_env.setenv(key, value)

    # act / assert
    with pytest.raises(InvalidInput, match=key):
        Settings.from_env(tmp_path / "missing.env")
