import pytest

from movierec.eval.metrics.coverage import catalog_coverage


def test_distinct_items_over_catalog():
    # arrange
    lists = [[1, 2, 3], [2, 3, 4], [4]]

    # act
    result = catalog_coverage(lists, catalog_size=8)

    # assert: {1, 2, 3, 4} out of 8
    assert result == pytest.approx(0.5)


def test_empty_lists():
    # act
    result = catalog_coverage([], catalog_size=10)

    # assert
    assert result == 0.0


def test_empty_catalog_is_zero():
    # act
    result = catalog_coverage([[1, 2]], catalog_size=0)

    # assert
    assert result == 0.0
