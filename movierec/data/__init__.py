from .loader import (
    Dataset,
    Interaction,
    Movie,
    build_dataset,
    dataset_exists,
    empty_ratings,
    interactions_to_frame,
    load_dataset,
    parse_movies,
    parse_ratings,
)
from .splitter import SPLITTERS, TrainTestSplit, leave_one_out, random_split, temporal_split

__all__ = [
    "Dataset",
    "Interaction",
    "Movie",
    "build_dataset",
    "dataset_exists",
    "empty_ratings",
    "interactions_to_frame",
    "load_dataset",
    "parse_movies",
    "parse_ratings",
    "SPLITTERS",
    "TrainTestSplit",
    "leave_one_out",
    "random_split",
    "temporal_split",
]
