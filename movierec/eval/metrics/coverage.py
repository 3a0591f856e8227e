from typing import Iterable


def catalog_coverage(recommendation_lists: Iterable[Iterable[int]], catalog_size: int) -> float:
    """Share of the catalog that appears in at least one recommendation list."""
    if catalog_size <= 0:
        return 0.0
    recommended = {int(item) for items in recommendation_lists for item in items}
    return len(recommended) / catalog_size
