import json

import pandas as pd
import pytest

from movierec.errors import SnapshotError
from movierec.models import (
    GlobalAverageModel,
    GraphBasedModel,
    ItemItemCFModel,
    MatrixFactorizationModel,
    PopularityModel,
)
from movierec.persistence import SnapshotStore, load_snapshot, save_snapshot


@pytest.fixture
def ratings():
    rows = [
        (u, m, float((u * m) % 5 + 1), u * 10 + m)
        for u in range(1, 9)
        for m in range(100, 112)
        if (u + m) % 3
    ]
    return pd.DataFrame(rows, columns=["UserID", "MovieID", "Rating", "Timestamp"])


@pytest.mark.parametrize(
    "factory",
    [
        PopularityModel,
        lambda: MatrixFactorizationModel(n_factors=3),
        lambda: ItemItemCFModel(k_neighbors=5),
        lambda: GraphBasedModel(n_walks=40, walk_length=6),
    ],
)
def test_restored_model_recommends_the_same(tmp_path, ratings, factory):
    # arrange
    model = factory().fit(ratings)
    path = tmp_path / "snapshot.json"

    # act
    save_snapshot(model, path)
    restored = load_snapshot(path)

    # assert
    assert type(restored) is type(model)
    for user_id in (1, 4, 8):
        assert restored.recommend_top_n(user_id, 5) == model.recommend_top_n(user_id, 5)
    assert restored.predict(2, 101) == pytest.approx(model.predict(2, 101))


def test_snapshot_file_is_tagged(tmp_path, ratings):
    # arrange
    path = tmp_path / "popularity.json"

    # act
    save_snapshot(PopularityModel().fit(ratings), path)

    # assert
    payload = json.loads(path.read_text())
    assert payload["snapshot"]["model"] == "popularity"
    assert payload["snapshot"]["version"] == 1
    assert "saved_at" in payload


def test_unknown_model_tag_is_rejected(tmp_path, ratings):
    # arrange
    path = tmp_path / "snapshot.json"
    save_snapshot(PopularityModel().fit(ratings), path)
    payload = json.loads(path.read_text())
    payload["snapshot"]["model"] = "deep-magic"
    path.write_text(json.dumps(payload))

    # act / assert
    with pytest.raises(SnapshotError):
        load_snapshot(path)


def test_version_mismatch_is_rejected(tmp_path, ratings):
    # arrange
    path = tmp_path / "snapshot.json"
    save_snapshot(PopularityModel().fit(ratings), path)
    payload = json.loads(path.read_text())
    payload["snapshot"]["version"] = 2
    path.write_text(json.dumps(payload))

    # act / assert
    with pytest.raises(SnapshotError):
        load_snapshot(path)


def test_corrupt_and_missing_files(tmp_path):
    # arrange
    path = tmp_path / "broken.json"
    path.write_text("{not json")

    # act / assert
    with pytest.raises(SnapshotError):
        load_snapshot(path)
    with pytest.raises(SnapshotError):
        load_snapshot(tmp_path / "missing.json")


def test_baselines_are_not_snapshotable(tmp_path, ratings):
    # act / assert
    with pytest.raises(SnapshotError):
        save_snapshot(GlobalAverageModel().fit(ratings), tmp_path / "g.json")


def test_snapshot_store(tmp_path, ratings):
    # arrange
    store = SnapshotStore(tmp_path / "models")
    model = PopularityModel().fit(ratings)

    # act
    store.save(model)

    # assert
    assert store.path_for("popularity") == tmp_path / "models" / "popularity.json"
    assert store.exists("popularity")
    assert store.all_exist(["popularity"])
    assert not store.all_exist(["popularity", "graph-based"])
    assert 0.0 <= store.age_seconds("popularity") < 60.0
    assert store.age_seconds("graph-based") is None
    assert store.load("popularity").recommend_top_n(1, 3) == model.recommend_top_n(1, 3)

    assert store.clear() == 1
    assert not store.exists("popularity")
