from typing import Iterable

import numpy as np


def reciprocal_rank(ranked_items: np.ndarray, relevant: Iterable[int]) -> float:
    """
        Reciprocal of the 1-based rank of the first relevant item over the
        full list, 0.0 when nothing in the list is relevant.
    """
    relevant = set(relevant)
    for rank, iid in enumerate(np.asarray(ranked_items), start=1):
        if int(iid) in relevant:
            return 1.0 / rank
    return 0.0
