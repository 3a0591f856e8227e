import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping

import numpy as np
import pandas as pd
from tqdm import tqdm

from movierec.eval.metrics.coverage import catalog_coverage
from movierec.eval.metrics.mrr import reciprocal_rank
from movierec.eval.metrics.ndcg import ndcg_at_k
from movierec.eval.metrics.precision import precision_at_k
from movierec.eval.metrics.recall import recall_at_k
from movierec.models.base import Recommendation, RecommenderModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class EvaluationMetrics:
    precision_at_k: float
    recall_at_k: float
    ndcg_at_k: float
    mrr: float
    coverage: float
    k: int
    n_users: int


def relevant_items_by_user(test_ratings: pd.DataFrame) -> Dict[int, set[int]]:
    """Every held-out interaction counts as relevant, whatever its weight."""
    return {
        int(uid): set(group["MovieID"].astype(int).tolist())
        for uid, group in test_ratings.groupby("UserID")
    }


def evaluate_model(
    predictions: Mapping[int, List[Recommendation]],
    test_ratings: pd.DataFrame,
    k: int,
    catalog_size: int,
) -> EvaluationMetrics:
    """Score precomputed recommendation lists against held-out interactions.

    Parameters
    ----------
    predictions : Mapping[int, list[Recommendation]]
        Ranked recommendations per user.
    test_ratings : pd.DataFrame
        Held-out interactions used as ground truth.
    k : int
        Cut-off position for precision, recall and NDCG. MRR uses the full list.
    catalog_size : int
        Number of items in the catalog, denominator of coverage.

    Returns
    -------
    EvaluationMetrics
        Macro-averages over users that have both held-out items and a
        non-empty recommendation list. Users missing either are left out of
        the average rather than counted as zero.
    """
    ground_truth = relevant_items_by_user(test_ratings)

    precision_scores = []
    recall_scores = []
    ndcg_scores = []
    rr_scores = []
    evaluated_lists = []
    n_skipped = 0

    for user_id, relevant in ground_truth.items():
        recs = predictions.get(user_id)
        if not recs:
            n_skipped += 1
            continue

        ranked_item_ids = np.array([r.item_id for r in recs], dtype=np.int64)
        evaluated_lists.append(ranked_item_ids.tolist())

        precision_scores.append(precision_at_k(ranked_item_ids, relevant, k=k))
        recall_scores.append(recall_at_k(ranked_item_ids, relevant, k=k))
        ndcg_scores.append(ndcg_at_k(ranked_item_ids, relevant, k=k))
        rr_scores.append(reciprocal_rank(ranked_item_ids, relevant))

    if n_skipped > 0:
        logger.warning(
            "Skipped %d/%d test users with no recommendations",
            n_skipped,
            len(ground_truth),
        )

    def _mean(values: List[float]) -> float:
        return float(np.mean(values)) if values else 0.0

    return EvaluationMetrics(
        precision_at_k=_mean(precision_scores),
        recall_at_k=_mean(recall_scores),
        ndcg_at_k=_mean(ndcg_scores),
        mrr=_mean(rr_scores),
        coverage=catalog_coverage(evaluated_lists, catalog_size),
        k=k,
        n_users=len(precision_scores),
    )


def evaluate(
    model: RecommenderModel,
    train_ratings: pd.DataFrame,
    test_ratings: pd.DataFrame,
    k: int = 10,
    catalog_size: int | None = None,
    show_progress: bool = False,
) -> EvaluationMetrics:
    """Evaluate a fitted recommender model on a held-out test set.

    Each test user is asked for ``k`` recommendations with their training
    items excluded.

    Parameters
    ----------
    model : RecommenderModel
        A fitted model.
    train_ratings : pd.DataFrame
        Training interactions, used to build the per-user exclusion sets.
    test_ratings : pd.DataFrame
        Held-out interactions used as ground truth.
    k : int
        Cut-off position for all metrics.
    catalog_size : int | None
        Catalog size for coverage; defaults to the number of distinct items
        in train and test.
    show_progress : bool
        Show a tqdm bar over the test users.

    Returns
    -------
    EvaluationMetrics
        Aggregated metrics averaged across evaluated users.
    """
    if catalog_size is None:
        catalog_size = int(
            pd.concat([train_ratings["MovieID"], test_ratings["MovieID"]]).nunique()
        )

    seen = RecommenderModel.build_seen_items(train_ratings)
    test_users = test_ratings["UserID"].drop_duplicates().astype(int).tolist()

    progress = tqdm(
        test_users,
        desc=f"Evaluating {model.name}",
        total=len(test_users),
        disable=not show_progress,
    )
    predictions = model.recommend_batch(progress, k, seen)

    return evaluate_model(predictions, test_ratings, k=k, catalog_size=catalog_size)


def format_metrics(metrics: EvaluationMetrics) -> str:
    """Render metrics as a fixed-layout text report."""
    k = metrics.k
    lines = [
        f"Evaluation Metrics @ K={k}",
        "============================",
        f"Precision@{k}:  {metrics.precision_at_k * 100:.2f}%",
        f"Recall@{k}:     {metrics.recall_at_k * 100:.2f}%",
        f"NDCG@{k}:       {metrics.ndcg_at_k * 100:.2f}%",
        f"MRR:           {metrics.mrr:.4f}",
        f"Coverage:      {metrics.coverage * 100:.2f}%",
        f"Users:         {metrics.n_users}",
    ]
    return "\n".join(lines)
