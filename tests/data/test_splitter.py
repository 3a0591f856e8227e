import math

import pandas as pd
import pytest

from movierec.data.splitter import (
    lcg_permutation,
    leave_one_out,
    random_split,
    temporal_split,
)
from movierec.errors import InvalidInput


@pytest.fixture
def ratings():
    return pd.DataFrame({
        "UserID":    [1, 1, 1, 1, 1, 2, 2, 3],
        "MovieID":   [10, 11, 12, 13, 14, 10, 11, 12],
        "Rating":    [5.0, 4.0, 3.0, 2.0, 1.0, 4.0, 5.0, 3.0],
        "Timestamp": [50, 10, 40, 20, 30, 7, 3, 1],
    })


def test_temporal_split_preserves_size(ratings):
    # act
    split = temporal_split(ratings, test_ratio=0.2)

    # assert
    assert len(split.train) + len(split.test) == len(ratings)


def test_temporal_split_holds_out_latest_per_user(ratings):
    # act
    split = temporal_split(ratings, test_ratio=0.4)

    # assert: user 1: floor(5 * 0.6) = 3 earliest in train
    user1_train = split.train[split.train["UserID"] == 1]
    user1_test = split.test[split.test["UserID"] == 1]
    assert user1_train["Timestamp"].tolist() == [10, 20, 30]
    assert user1_test["Timestamp"].tolist() == [40, 50]

    # user 2: floor(2 * 0.6) = 1; user 3: floor(1 * 0.6) = 0
    assert split.train[split.train["UserID"] == 2]["MovieID"].tolist() == [11]
    assert split.test[split.test["UserID"] == 3]["MovieID"].tolist() == [12]


def test_temporal_split_is_stable_on_equal_timestamps():
    # arrange
    ratings = pd.DataFrame({
        "UserID": [1, 1, 1],
        "MovieID": [3, 1, 2],
        "Rating": [1.0, 1.0, 1.0],
        "Timestamp": [5, 5, 5],
    })

    # act
    split = temporal_split(ratings, test_ratio=0.34)

    # assert: original order kept among ties
    assert split.train["MovieID"].tolist() == [3]
    assert split.test["MovieID"].tolist() == [1, 2]


def test_random_split_preserves_size(ratings):
    # act
    split = random_split(ratings, test_ratio=0.25, seed=42)

    # assert: floor(8 * 0.75) = 6
    assert len(split.train) == 6
    assert len(split.test) == 2


def test_random_split_same_seed_same_split(ratings):
    # act
    first = random_split(ratings, test_ratio=0.5, seed=7)
    second = random_split(ratings, test_ratio=0.5, seed=7)

    # assert
    pd.testing.assert_frame_equal(first.train, second.train)
    pd.testing.assert_frame_equal(first.test, second.test)


def test_lcg_permutation_first_swap():
    # arrange
    state = (42 * 9301 + 49297) % 233280
    expected_j = math.floor(state / 233280 * 4)

    # act
    order = lcg_permutation(4, seed=42)

    # assert
    assert sorted(order.tolist()) == [0, 1, 2, 3]
    assert order[3] == expected_j


def test_leave_one_out(ratings):
    # act
    split = leave_one_out(ratings)

    # assert: users 1 and 2 have > 1 interaction
    assert len(split.test) == 2
    assert split.test["MovieID"].tolist() == [10, 10]
    assert split.test[split.test["UserID"] == 1]["Timestamp"].tolist() == [50]
    assert split.test[split.test["UserID"] == 2]["Timestamp"].tolist() == [7]
    assert 3 not in set(split.test["UserID"])
    assert split.train[split.train["UserID"] == 3]["MovieID"].tolist() == [12]


@pytest.mark.parametrize("ratio", [-0.1, 1.5])
def test_invalid_ratio(ratings, ratio):
    # act / assert
    with pytest.raises(InvalidInput):
        temporal_split(ratings, test_ratio=ratio)
    with pytest.raises(InvalidInput):
        random_split(ratings, test_ratio=ratio)
