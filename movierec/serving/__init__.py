from movierec.serving.api import create_app
from movierec.serving.bootstrap import bootstrap, build_serving_models, restore_or_train
from movierec.serving.registry import EnrichedRecommendation, RecommenderRegistry
from movierec.serving.repository import InteractionRepository

__all__ = [
    "EnrichedRecommendation",
    "InteractionRepository",
    "RecommenderRegistry",
    "bootstrap",
    "build_serving_models",
    "create_app",
    "restore_or_train",
]
