import argparse

import pandas as pd
import pytest

from movierec.config import Settings
from movierec.data.splitter import SPLITTERS
from movierec.run_evaluation import build_model, split_ratings


@pytest.fixture
def ratings():
    return pd.DataFrame({
        "UserID":    [1, 1, 1, 1, 1, 2, 2, 3],
        "MovieID":   [10, 20, 30, 40, 50, 10, 20, 30],
        "Rating":    [5.0, 4.0, 3.0, 2.0, 1.0, 4.0, 5.0, 3.0],
        "Timestamp": [1, 2, 3, 4, 5, 6, 7, 8],
    })


def _args(**overrides):
    defaults = dict(
        split="temporal",
        test_ratio=0.2,
        seed=42,
        mf_factors=4,
        mf_iterations=100,
        mf_regularization=0.1,
        cf_neighbors=5,
        graph_walks=5000,
        graph_walk_length=4,
        graph_restart=0.2,
        n_jobs=1,
    )
    defaults.update(overrides)
    return argparse.Namespace(**defaults)


@pytest.mark.parametrize("policy", sorted(SPLITTERS))
def test_split_ratings_dispatches_every_policy(ratings, policy):
    # act
    split = split_ratings(ratings, _args(split=policy))

    # assert
    assert len(split.train) + len(split.test) == len(ratings)


def test_split_ratings_matches_direct_calls(ratings):
    # act
    loo = split_ratings(ratings, _args(split="loo"))
    seeded = split_ratings(ratings, _args(split="random", test_ratio=0.5, seed=7))

    # assert
    assert loo.test.equals(SPLITTERS["loo"](ratings).test)
    assert seeded.test.equals(SPLITTERS["random"](ratings, test_ratio=0.5, seed=7).test)


def test_build_model_applies_setting_caps():
    # arrange
    settings = Settings(max_walks=10, max_iterations=3)

    # act
    mf = build_model("matrix-factorization", _args(), settings)
    graph = build_model("graph-based", _args(), settings)

    # assert
    assert mf.n_iterations == 3
    assert graph.n_walks == 10


def test_build_model_unknown_name():
    # act / assert
    with pytest.raises(ValueError, match="Unknown model"):
        build_model("nope", _args(), Settings())
