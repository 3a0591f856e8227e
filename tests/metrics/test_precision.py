import numpy as np
import pytest

from movierec.eval.metrics.precision import precision_at_k


def test_all_relevant():
    # arrange
    ranked_item_ids = np.array([1, 2, 3])
    relevant = {1, 2, 3}

    # act
    result = precision_at_k(ranked_item_ids, relevant, k=3)

    # assert
    assert result == pytest.approx(1.0)


def test_none_relevant():
    # arrange
    ranked_item_ids = np.array([1, 2, 3])
    relevant = {7, 8}

    # act
    result = precision_at_k(ranked_item_ids, relevant, k=3)

    # assert
    assert result == pytest.approx(0.0)


def test_partial_hits():
    # arrange
    ranked_item_ids = np.array([10, 99, 30])
    relevant = {10, 30}

    # act
    result = precision_at_k(ranked_item_ids, relevant, k=3)

    # assert: 2 of the 3 recommended items were held out
    assert result == pytest.approx(2 / 3)


def test_k_truncates():
    # arrange
    ranked_item_ids = np.array([1, 2, 3, 4])
    relevant = {1, 3, 4}

    # act
    result = precision_at_k(ranked_item_ids, relevant, k=2)

    # assert: k=2: only items 1 (hit) and 2 (miss)
    assert result == pytest.approx(0.5)


def test_k_larger_than_list_divides_by_k():
    # arrange
    ranked_item_ids = np.array([1, 2])
    relevant = {1, 2}

    # act
    result = precision_at_k(ranked_item_ids, relevant, k=4)

    # assert: short lists are penalized
    assert result == pytest.approx(0.5)


@pytest.mark.parametrize("k", [0, -3])
def test_non_positive_k_is_zero(k):
    # act
    result = precision_at_k(np.array([1, 2]), {1}, k=k)

    # assert
    assert result == 0.0
