import pandas as pd
import pytest

from movierec.models.popularity import PopularityModel


def _frame(rows):
    return pd.DataFrame(rows, columns=["UserID", "MovieID", "Rating", "Timestamp"])


@pytest.fixture
def ratings():
    return _frame([
        (1, 1, 5.0, 0),
        (2, 1, 5.0, 0),
        (1, 2, 1.0, 0),
    ])


def test_score_is_count_times_mean(ratings):
    # act
    model = PopularityModel().fit(ratings)

    # assert
    assert model.predict(99, 1) == pytest.approx(10.0)
    assert model.predict(99, 2) == pytest.approx(1.0)
    assert model.predict(99, 3) == 0.0


def test_ranking_order(ratings):
    # act
    recs = PopularityModel().fit(ratings).recommend_top_n(1, 10)

    # assert
    assert [r.item_id for r in recs] == [1, 2]
    assert recs[0].score == pytest.approx(10.0)
    assert recs[0].explanation == "Popular item"


def test_ranking_is_non_increasing():
    # arrange
    ratings = _frame([(u, m, float((u + m) % 5 + 1), 0) for u in range(1, 20) for m in range(1, 8) if (u * m) % 3])

    # act
    recs = PopularityModel().fit(ratings).recommend_top_n(1, 100)

    # assert
    scores = [r.score for r in recs]
    assert scores == sorted(scores, reverse=True)


def test_equal_scores_ordered_by_item_id():
    # arrange
    ratings = _frame([(1, 9, 4.0, 0), (1, 3, 4.0, 0), (1, 5, 4.0, 0)])

    # act
    recs = PopularityModel().fit(ratings).recommend_top_n(1, 3)

    # assert
    assert [r.item_id for r in recs] == [3, 5, 9]


def test_exclusions_and_limit(ratings):
    # arrange
    model = PopularityModel().fit(ratings)

    # act
    recs = model.recommend_top_n(1, 1, exclude_items={1})

    # assert
    assert [r.item_id for r in recs] == [2]
    assert model.recommend_top_n(1, 0) == []


def test_refit_replaces_state(ratings):
    # arrange
    model = PopularityModel().fit(ratings)

    # act
    model.fit(_frame([(1, 7, 3.0, 0)]))

    # assert
    assert [r.item_id for r in model.recommend_top_n(1, 10)] == [7]
    assert model.predict(1, 1) == 0.0


def test_empty_training_data():
    # act
    model = PopularityModel().fit(_frame([]))

    # assert
    assert model.recommend_top_n(1, 5) == []
