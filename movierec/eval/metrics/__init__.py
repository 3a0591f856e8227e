from movierec.eval.metrics.coverage import catalog_coverage
from movierec.eval.metrics.mrr import reciprocal_rank
from movierec.eval.metrics.ndcg import ndcg_at_k
from movierec.eval.metrics.precision import precision_at_k
from movierec.eval.metrics.recall import recall_at_k

__all__ = [
    "catalog_coverage",
    "ndcg_at_k",
    "precision_at_k",
    "recall_at_k",
    "reciprocal_rank",
]
