from __future__ import annotations

import threading
import time
from typing import Dict, List, Set, Tuple

import pandas as pd

from movierec.data.loader import Interaction, interactions_to_frame


class InteractionRepository:
    """Live interaction sequence with overwrite-by-key semantics.

    Records are kept in insertion order; writing an existing
    ``(user_id, item_id)`` pair replaces that record in place. Reads return
    copies, so callers never observe a half-applied write.
    """

    def __init__(self, ratings: pd.DataFrame | None = None) -> None:
        self._lock = threading.Lock()
        self._records: List[Interaction] = []
        self._position: Dict[Tuple[int, int], int] = {}
        self._by_user: Dict[int, Set[int]] = {}
        if ratings is not None:
            self._load(ratings)

    def _load(self, ratings: pd.DataFrame) -> None:
        for uid, mid, rating, ts in zip(
            ratings["UserID"].tolist(),
            ratings["MovieID"].tolist(),
            ratings["Rating"].tolist(),
            ratings["Timestamp"].tolist(),
        ):
            self._put(Interaction(user_id=int(uid), item_id=int(mid), weight=float(rating), timestamp=int(ts)))

    def _put(self, interaction: Interaction) -> str:
        key = (interaction.user_id, interaction.item_id)
        pos = self._position.get(key)
        if pos is not None:
            self._records[pos] = interaction
            return "updated"
        self._position[key] = len(self._records)
        self._records.append(interaction)
        self._by_user.setdefault(interaction.user_id, set()).add(interaction.item_id)
        return "added"

    def add_or_update(self, user_id: int, item_id: int, weight: float, timestamp: int | None = None) -> Tuple[str, Interaction]:
        """Append a new interaction or overwrite the one with the same key."""
        if timestamp is None:
            timestamp = int(time.time())
        interaction = Interaction(user_id=int(user_id), item_id=int(item_id), weight=float(weight), timestamp=timestamp)
        with self._lock:
            action = self._put(interaction)
        return action, interaction

    def get(self, user_id: int, item_id: int) -> Interaction | None:
        with self._lock:
            pos = self._position.get((int(user_id), int(item_id)))
            return self._records[pos] if pos is not None else None

    def ratings_for(self, user_id: int) -> Dict[int, float]:
        """item_id -> weight for one user."""
        with self._lock:
            items = self._by_user.get(int(user_id), set())
            return {
                item_id: self._records[self._position[(int(user_id), item_id)]].weight
                for item_id in items
            }

    def users(self) -> Set[int]:
        with self._lock:
            return set(self._by_user)

    def max_user_id(self) -> int | None:
        with self._lock:
            return max(self._by_user) if self._by_user else None

    def snapshot(self) -> pd.DataFrame:
        with self._lock:
            records = list(self._records)
        return interactions_to_frame(records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
