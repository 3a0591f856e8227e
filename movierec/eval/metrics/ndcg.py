from typing import Iterable

import numpy as np


def ndcg_at_k(ranked_items: np.ndarray, relevant: Iterable[int], k: int = 10) -> float:
    """Compute NDCG@K with binary gain.

    Parameters
    ----------
    ranked_items : np.ndarray
        Item IDs ordered by predicted score (descending). Only the first
        *k* entries are used.
    relevant : iterable of int
        Held-out item IDs of the user; each hit has gain 1.
    k : int
        Cut-off position.

    Returns
    -------
    float
        NDCG@K in [0, 1]. Returns 0.0 when there are no relevant items.
    """
    relevant = set(relevant)
    if k <= 0:
        return 0.0

    ranked_items = np.asarray(ranked_items)[:k]
    gains = np.array([1.0 if int(item) in relevant else 0.0 for item in ranked_items])
    discounts = np.log2(np.arange(2, len(gains) + 2))  # log2(i+1) for i=1..K

    dcg = np.sum(gains / discounts)

    n_ideal = min(k, len(relevant))
    idcg = np.sum(1.0 / np.log2(np.arange(2, n_ideal + 2)))

    if idcg == 0.0:
        return 0.0

    return float(dcg / idcg)
