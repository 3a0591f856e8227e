from .random_walk import GraphBasedModel

__all__ = [
    "GraphBasedModel",
]
