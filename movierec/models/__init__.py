from movierec.models.als import MatrixFactorizationModel
from movierec.models.base import Recommendation, RecommenderModel
from movierec.models.baselines import GlobalAverageModel, UserAverageModel
from movierec.models.collaborative_filtering import ItemItemCFModel
from movierec.models.graph import GraphBasedModel
from movierec.models.popularity import PopularityModel

MODEL_CLASSES = {
    cls.name: cls
    for cls in (
        PopularityModel,
        MatrixFactorizationModel,
        ItemItemCFModel,
        GraphBasedModel,
        GlobalAverageModel,
        UserAverageModel,
    )
}

__all__ = [
    "RecommenderModel",
    "Recommendation",
    "PopularityModel",
    "MatrixFactorizationModel",
    "ItemItemCFModel",
    "GraphBasedModel",
    "GlobalAverageModel",
    "UserAverageModel",
    "MODEL_CLASSES",
]
