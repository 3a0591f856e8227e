import pandas as pd
import pytest

from movierec.config import Settings
from movierec.errors import DatasetUnavailable
from movierec.models import PopularityModel
from movierec.persistence import SnapshotStore
from movierec.serving.bootstrap import build_serving_models, bootstrap, restore_or_train
from movierec.serving.registry import RecommenderRegistry

SERVED = ["popularity", "matrix-factorization", "item-item-cf", "graph-based"]


@pytest.fixture
def train():
    return pd.DataFrame({
        "UserID":    [1, 1, 2, 2, 3],
        "MovieID":   [10, 20, 10, 30, 40],
        "Rating":    [5.0, 4.0, 3.0, 5.0, 2.0],
        "Timestamp": [1, 2, 3, 4, 5],
    })


@pytest.fixture
def dataset_dir(tmp_path):
    ratings = []
    for user in range(1, 6):
        for n, movie in enumerate(range(1, 7)):
            if (user + movie) % 3 != 0:
                ratings.append(f"{user}::{movie}::{(user * movie) % 5 + 1}::{1000 + n}")
    (tmp_path / "ratings.dat").write_text("\n".join(ratings) + "\n", encoding="latin-1")
    (tmp_path / "movies.dat").write_text(
        "\n".join(f"{m}::Movie {m} (2000)::Drama|Comedy" for m in range(1, 7)) + "\n",
        encoding="latin-1",
    )
    return tmp_path


def test_serving_models_respect_caps():
    # act
    models = build_serving_models(Settings(max_walks=10, max_iterations=2))

    # assert
    assert [m.name for m in models] == SERVED
    mf, graph = models[1], models[3]
    assert mf.n_iterations == 2
    assert graph.n_walks == 10


def test_restore_or_train_trains_then_restores(tmp_path, train):
    # arrange
    store = SnapshotStore(tmp_path)

    # act
    trained = restore_or_train(PopularityModel(), train, store)
    restored = restore_or_train(PopularityModel(), train.iloc[:0], store)

    # assert
    assert store.exists("popularity")
    assert restored is not trained
    assert restored.recommend_top_n(99, 10) == trained.recommend_top_n(99, 10)


def test_restore_or_train_replaces_corrupt_snapshot(tmp_path, train):
    # arrange
    store = SnapshotStore(tmp_path)
    store.path_for("popularity").write_text("{broken", encoding="utf-8")

    # act
    model = restore_or_train(PopularityModel(), train, store)

    # assert
    assert [r.item_id for r in model.recommend_top_n(99, 1)] == [10]
    assert store.load("popularity").recommend_top_n(99, 1) == model.recommend_top_n(99, 1)


def test_bootstrap_missing_dataset(tmp_path):
    # arrange
    settings = Settings(dataset_path=tmp_path / "absent", models_dir=tmp_path / "models")

    # act / assert
    with pytest.raises(DatasetUnavailable):
        bootstrap(RecommenderRegistry(), settings)


def test_bootstrap_registers_models_and_saves_snapshots(dataset_dir):
    # arrange
    settings = Settings(dataset_path=dataset_dir, models_dir=dataset_dir / "models")
    registry = RecommenderRegistry()

    # act
    bootstrap(registry, settings)

    # assert
    assert registry.is_ready
    assert registry.model_names() == SERVED
    assert SnapshotStore(settings.models_dir).all_exist(SERVED)
    assert registry.get_movie(1).title == "Movie 1 (2000)"
    assert registry.next_user_id() == 6
