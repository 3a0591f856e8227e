from .ranker import PopularityModel

__all__ = [
    "PopularityModel",
]
