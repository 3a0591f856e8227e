"""Movie recommendation models, offline evaluation and serving."""

__version__ = "0.1.0"
