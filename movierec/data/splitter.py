"""Train/test splitting policies over a ratings frame."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List

import numpy as np
import pandas as pd

from movierec.errors import InvalidInput

LCG_MULTIPLIER = 9301
LCG_INCREMENT = 49297
LCG_MODULUS = 233280


@dataclass(frozen=True, kw_only=True)
class TrainTestSplit:
    train: pd.DataFrame
    test: pd.DataFrame


def _check_ratio(test_ratio: float) -> None:
    if not 0.0 <= test_ratio <= 1.0:
        raise InvalidInput(f"test_ratio must be in [0, 1], got {test_ratio}")


def _sorted_by_time(group: pd.DataFrame) -> pd.DataFrame:
    order = group["Timestamp"].fillna(0).to_numpy()
    return group.iloc[np.argsort(order, kind="stable")]


def _concat(parts: List[pd.DataFrame], like: pd.DataFrame) -> pd.DataFrame:
    if not parts:
        return like.iloc[0:0].copy()
    return pd.concat(parts, ignore_index=True)


def temporal_split(ratings: pd.DataFrame, test_ratio: float = 0.2) -> TrainTestSplit:
    """Per-user chronological split.

    Each user's interactions are sorted by timestamp (missing counts as 0);
    the earliest ``floor(n * (1 - test_ratio))`` go to train, the rest to test.
    """
    _check_ratio(test_ratio)

    train_parts, test_parts = [], []
    for _, group in ratings.groupby("UserID", sort=False):
        group = _sorted_by_time(group)
        split = math.floor(len(group) * (1 - test_ratio))
        train_parts.append(group.iloc[:split])
        test_parts.append(group.iloc[split:])

    return TrainTestSplit(
        train=_concat(train_parts, ratings),
        test=_concat(test_parts, ratings),
    )


def lcg_permutation(n: int, seed: int) -> np.ndarray:
    """Fisher-Yates permutation of ``range(n)`` driven by a linear congruential generator."""
    order = np.arange(n, dtype=np.int64)
    state = int(seed)
    for i in range(n - 1, 0, -1):
        state = (state * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
        j = math.floor(state / LCG_MODULUS * (i + 1))
        order[i], order[j] = order[j], order[i]
    return order


def random_split(
    ratings: pd.DataFrame,
    test_ratio: float = 0.2,
    seed: int = 42,
) -> TrainTestSplit:
    """Seeded shuffle of all interactions, then a single cut.

    The same seed always reproduces the same split.
    """
    _check_ratio(test_ratio)

    shuffled = ratings.iloc[lcg_permutation(len(ratings), seed)]
    split = math.floor(len(shuffled) * (1 - test_ratio))
    return TrainTestSplit(
        train=shuffled.iloc[:split].reset_index(drop=True),
        test=shuffled.iloc[split:].reset_index(drop=True),
    )


def leave_one_out(ratings: pd.DataFrame) -> TrainTestSplit:
    """Hold out each user's latest interaction.

    Users with a single interaction keep it in train.
    """
    train_parts, test_parts = [], []
    for _, group in ratings.groupby("UserID", sort=False):
        if len(group) == 1:
            train_parts.append(group)
            continue
        group = _sorted_by_time(group)
        train_parts.append(group.iloc[:-1])
        test_parts.append(group.iloc[-1:])

    return TrainTestSplit(
        train=_concat(train_parts, ratings),
        test=_concat(test_parts, ratings),
    )


SPLITTERS = {
    "temporal": temporal_split,
    "random": random_split,
    "loo": leave_one_out,
}
