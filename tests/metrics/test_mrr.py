import numpy as np
import pytest

from movierec.eval.metrics.mrr import reciprocal_rank


def test_first_item_relevant():
    # act
    result = reciprocal_rank(np.array([10, 99, 30]), {10, 30})

    # assert
    assert result == pytest.approx(1.0)


def test_first_hit_at_third_position():
    # act
    result = reciprocal_rank(np.array([5, 6, 7, 8]), {7, 8})

    # assert
    assert result == pytest.approx(1 / 3)


def test_uses_full_list_not_a_cutoff():
    # arrange
    ranked_item_ids = np.arange(1, 21)

    # act
    result = reciprocal_rank(ranked_item_ids, {20})

    # assert
    assert result == pytest.approx(1 / 20)


def test_no_hit_is_zero():
    # act
    result = reciprocal_rank(np.array([1, 2]), {3})

    # assert
    assert result == 0.0
