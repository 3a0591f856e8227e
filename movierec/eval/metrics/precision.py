from typing import Iterable

import numpy as np


def precision_at_k(
    ranked_items: np.ndarray,
    relevant: Iterable[int],
    k: int = 10,
) -> float:
    """Compute Precision@K with binary relevance.

    Parameters
    ----------
    ranked_items : array-like of int
        Item IDs ordered by predicted score (descending). Only the first
        *k* entries are used.
    relevant : iterable of int
        Held-out item IDs of the user. Anything else is non-relevant.
    k : int
        Cut-off position.

    Returns
    -------
    float
        Precision@K in [0, 1]. Returns 0.0 when ``k <= 0``.
    """
    if k <= 0:
        return 0.0
    relevant = set(relevant)
    ranked_items = np.asarray(ranked_items)[:k]
    hits = sum(1 for item in ranked_items if int(item) in relevant)
    return hits / k
