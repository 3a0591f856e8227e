import pandas as pd
import pytest

from movierec.data.loader import (
    Interaction,
    Movie,
    dataset_exists,
    interactions_to_frame,
    load_dataset,
    parse_movies,
    parse_ratings,
)
from movierec.errors import InvalidInput, MalformedRecord


def test_parse_ratings_columns_and_types():
    # arrange
    lines = ["1::1193::5::978300760\n", "1::661::3::978302109\n"]

    # act
    ratings = parse_ratings(lines)

    # assert
    assert list(ratings.columns) == ["UserID", "MovieID", "Rating", "Timestamp"]
    assert ratings["UserID"].tolist() == [1, 1]
    assert ratings["MovieID"].tolist() == [1193, 661]
    assert ratings["Rating"].tolist() == [5.0, 3.0]
    assert ratings["Timestamp"].tolist() == [978300760, 978302109]
    assert ratings["Rating"].dtype == "float64"


def test_parse_ratings_skips_blank_lines():
    # act
    ratings = parse_ratings(["1::2::3::4", "", "   ", "2::3::4::5"])

    # assert
    assert len(ratings) == 2


def test_parse_ratings_wrong_field_count_reports_line():
    # arrange
    lines = ["1::2::3::4", "1::2::3"]

    # act
    with pytest.raises(MalformedRecord) as exc_info:
        parse_ratings(lines, source="ratings.dat")

    # assert
    assert exc_info.value.line_no == 2
    assert "ratings.dat:2" in str(exc_info.value)


@pytest.mark.parametrize("line", ["x::2::3::4", "1::y::3::4", "1::2::five::4", "1::2::3::now"])
def test_parse_ratings_non_numeric_field(line):
    # act / assert
    with pytest.raises(MalformedRecord):
        parse_ratings([line])


def test_parse_ratings_empty_timestamp_is_zero():
    # act
    ratings = parse_ratings(["1::10::5::", "2::20::4:: ", "3::30::3::42"])

    # assert
    assert ratings["Timestamp"].tolist() == [0, 0, 42]
    assert ratings["Rating"].tolist() == [5.0, 4.0, 3.0]
    assert ratings["Timestamp"].dtype == "int64"


def test_malformed_record_is_invalid_input():
    # act / assert
    with pytest.raises(InvalidInput):
        parse_ratings(["not a record"])


def test_parse_ratings_empty_input():
    # act
    ratings = parse_ratings([])

    # assert
    assert ratings.empty
    assert list(ratings.columns) == ["UserID", "MovieID", "Rating", "Timestamp"]


def test_parse_movies_genres():
    # arrange
    lines = [
        "1::Toy Story (1995)::Animation|Children's|Comedy",
        "2::Jumanji (1995)::Adventure||Fantasy",
        "3::Untitled::",
    ]

    # act
    movies = parse_movies(lines)

    # assert
    assert movies[1] == Movie(id=1, title="Toy Story (1995)", genres=("Animation", "Children's", "Comedy"))
    assert movies[2].genres == ("Adventure", "Fantasy")
    assert movies[3].genres == ()


def test_parse_movies_wrong_field_count():
    # act / assert
    with pytest.raises(MalformedRecord):
        parse_movies(["1::Title"])


def test_interactions_to_frame_fills_missing_timestamp():
    # arrange
    records = [
        Interaction(user_id=1, item_id=2, weight=4.0, timestamp=None),
        Interaction(user_id=3, item_id=4, weight=5.0, timestamp=99),
    ]

    # act
    frame = interactions_to_frame(records)

    # assert
    assert frame["Timestamp"].tolist() == [0, 99]
    assert frame["UserID"].tolist() == [1, 3]


def test_load_dataset(tmp_path):
    # arrange
    (tmp_path / "ratings.dat").write_text("1::10::5::100\n2::10::3::200\n2::20::4::300\n", encoding="latin-1")
    (tmp_path / "movies.dat").write_text("10::Amélie (2001)::Comedy|Romance\n20::Heat (1995)::Action\n", encoding="latin-1")

    # act
    dataset = load_dataset(tmp_path)

    # assert
    assert dataset_exists(tmp_path)
    assert len(dataset.interactions) == 3
    assert dataset.users == {1, 2}
    assert dataset.movies[10].title == "Amélie (2001)"
    assert isinstance(dataset.interactions, pd.DataFrame)


def test_dataset_exists_requires_both_files(tmp_path):
    # arrange
    (tmp_path / "ratings.dat").write_text("", encoding="latin-1")

    # act / assert
    assert not dataset_exists(tmp_path)
