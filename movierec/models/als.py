from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Dict, Iterable, List, Mapping, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from scipy import sparse

from movierec.errors import InvalidInput
from movierec.models.base import Recommendation, RecommenderModel, as_item_set
from movierec.models.snapshots import MatrixFactorizationSnapshot

logger = logging.getLogger(__name__)

GAUSS_SEIDEL_SWEEPS = 5
INIT_SCALE = 0.005
MAX_COLD_START_USERS = 10_000


def gauss_seidel(A: np.ndarray, b: np.ndarray, n_sweeps: int = GAUSS_SEIDEL_SWEEPS) -> np.ndarray:
    """Approximately solve a batch of systems ``A[r] x[r] = b[r]``.

    Runs a fixed number of Gauss-Seidel sweeps from ``x = 0`` on every system
    at once. This is deliberately not an exact solve. Non-finite results are
    replaced by zeros.

    Parameters
    ----------
    A : np.ndarray
        Shape (n_systems, k, k), symmetric positive definite.
    b : np.ndarray
        Shape (n_systems, k).
    n_sweeps : int
        Number of full passes over the k unknowns.

    Returns
    -------
    np.ndarray
        Shape (n_systems, k).
    """
    x = np.zeros_like(b, dtype=np.float64)
    diag = np.diagonal(A, axis1=1, axis2=2)
    k = b.shape[1]

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        for _ in range(n_sweeps):
            for i in range(k):
                off_diag = np.einsum("rj,rj->r", A[:, i, :], x) - diag[:, i] * x[:, i]
                x[:, i] = (b[:, i] - off_diag) / diag[:, i]

    x[~np.isfinite(x)] = 0.0
    return x


def _solve_rows(
    R: sparse.csr_matrix,
    fixed: np.ndarray,
    rows: np.ndarray,
    regularization: float,
) -> np.ndarray:
    # (F^T F + λI) x = F^T r for every row in the chunk
    k = fixed.shape[1]
    A = np.empty((len(rows), k, k), dtype=np.float64)
    b = np.empty((len(rows), k), dtype=np.float64)
    reg_I = regularization * np.eye(k, dtype=np.float64)

    for j, r in enumerate(rows):
        start, end = R.indptr[r], R.indptr[r + 1]
        F = fixed[R.indices[start:end]]
        A[j] = F.T @ F + reg_I
        b[j] = F.T @ R.data[start:end]

    return gauss_seidel(A, b)


class MatrixFactorizationModel(RecommenderModel):
    """Alternating Least Squares matrix factorization for explicit feedback.

    Minimizes: Σ_{observed} (r_ui - x_u · y_i)² + λ(||X||² + ||Y||²)

    Each row update solves its regularized normal equations with a fixed
    5-sweep Gauss-Seidel pass instead of an exact solve. Rows are solved in
    chunks on a joblib worker pool; every chunk writes disjoint rows, so the
    result does not depend on ``n_jobs``.

    ``recommend_top_n`` rescales the raw dot products of exactly the scored
    candidate set to [1, 5] (min-max, 3.0 when the range is zero). Scores are
    therefore only comparable within one response, never across calls or
    across models.

    Parameters
    ----------
    n_factors : int
        Dimensionality of latent factors.
    n_iterations : int
        Number of ALS iterations.
    regularization : float
        L2 regularization strength, must be positive.
    random_state : int
        Seed for the factor initialization.
    n_jobs : int
        Worker pool size for the row solves.
    chunk_size : int
        Rows per worker task.
    max_cold_start_users : int
        Cached cold-start factors kept; least recently used are evicted.
    """

    name = "matrix-factorization"
    explanation = "Matrix factorization"

    def __init__(
        self,
        n_factors: int = 30,
        n_iterations: int = 5,
        regularization: float = 0.1,
        random_state: int = 42,
        n_jobs: int = 1,
        chunk_size: int = 512,
        max_cold_start_users: int = MAX_COLD_START_USERS,
    ):
        if n_factors <= 0:
            raise InvalidInput(f"n_factors must be positive, got {n_factors}")
        if n_iterations < 0:
            raise InvalidInput(f"n_iterations must be non-negative, got {n_iterations}")
        if regularization <= 0:
            raise InvalidInput(f"regularization must be positive, got {regularization}")

        self.n_factors = int(n_factors)
        self.n_iterations = int(n_iterations)
        self.regularization = float(regularization)
        self.random_state = int(random_state)
        self.n_jobs = int(n_jobs)
        self.chunk_size = max(1, int(chunk_size))
        self.max_cold_start_users = max(1, int(max_cold_start_users))

        self.user_factors: np.ndarray | None = None
        self.item_factors: np.ndarray | None = None
        self.user_to_idx: Dict[int, int] = {}
        self.item_to_idx: Dict[int, int] = {}
        self._item_ids: np.ndarray = np.array([], dtype=np.int64)
        self._R: sparse.csr_matrix | None = None

        self.loss_history_: List[float] = []

        self._cold_start_lock = threading.Lock()
        # least recently used first
        self._cold_start_factors: OrderedDict[int, Tuple[tuple, np.ndarray]] = OrderedDict()

    def _build_interaction_matrix(self, ratings: pd.DataFrame) -> sparse.csr_matrix:
        users_list = ratings["UserID"].drop_duplicates().astype(int).to_numpy()
        items_list = ratings["MovieID"].drop_duplicates().astype(int).to_numpy()

        self.user_to_idx = {int(u): i for i, u in enumerate(users_list)}
        self.item_to_idx = {int(m): i for i, m in enumerate(items_list)}
        self._item_ids = items_list.astype(np.int64)

        row = ratings["UserID"].map(self.user_to_idx).to_numpy(dtype=np.int64)
        col = ratings["MovieID"].map(self.item_to_idx).to_numpy(dtype=np.int64)
        data = ratings["Rating"].to_numpy(dtype=np.float64)

        R = sparse.csr_matrix(
            (data, (row, col)),
            shape=(len(users_list), len(items_list)),
            dtype=np.float64,
        )
        # zero weights are "unknown", not observations
        R.eliminate_zeros()
        return R

    def fit(self, ratings: pd.DataFrame) -> "MatrixFactorizationModel":
        ratings = self.deduplicate(ratings)
        self.loss_history_ = []
        with self._cold_start_lock:
            self._cold_start_factors.clear()

        logger.info("Training matrix factorization with %d factors...", self.n_factors)
        rng = np.random.default_rng(self.random_state)

        R = self._build_interaction_matrix(ratings)
        n_users, n_items = R.shape

        user_factors = rng.uniform(-INIT_SCALE, INIT_SCALE, (n_users, self.n_factors))
        item_factors = rng.uniform(-INIT_SCALE, INIT_SCALE, (n_items, self.n_factors))

        R_t = R.T.tocsr()
        for iteration in range(self.n_iterations):
            self._als_step(R, item_factors, user_factors)  # fix items, solve for users
            self._als_step(R_t, user_factors, item_factors)  # fix users, solve for items

            rmse = self.rmse(R, user_factors, item_factors)
            self.loss_history_.append(rmse)
            logger.info("ALS iteration %d/%d, RMSE: %.4f", iteration + 1, self.n_iterations, rmse)

        self._R = R
        self.user_factors = user_factors
        self.item_factors = item_factors
        return self

    def _als_step(
        self,
        R: sparse.csr_matrix,
        fixed: np.ndarray,
        solve_for: np.ndarray,
    ) -> None:
        n_rows = solve_for.shape[0]
        if n_rows == 0:
            return
        chunks = [
            np.arange(start, min(start + self.chunk_size, n_rows))
            for start in range(0, n_rows, self.chunk_size)
        ]
        solved = Parallel(n_jobs=self.n_jobs, prefer="threads")(
            delayed(_solve_rows)(R, fixed, rows, self.regularization) for rows in chunks
        )
        for rows, block in zip(chunks, solved):
            solve_for[rows] = block

    @staticmethod
    def rmse(R: sparse.csr_matrix, user_factors: np.ndarray, item_factors: np.ndarray) -> float:
        """Root mean squared error over the known (non-zero) entries of ``R``."""
        coo = R.tocoo()
        if coo.nnz == 0:
            return 0.0
        pred = np.einsum("ij,ij->i", user_factors[coo.row], item_factors[coo.col])
        return float(np.sqrt(np.mean((coo.data - pred) ** 2)))

    def predict(self, user_id: int, item_id: int) -> float:
        u_idx = self.user_to_idx.get(int(user_id))
        i_idx = self.item_to_idx.get(int(item_id))
        if u_idx is None or i_idx is None or self.user_factors is None:
            return 0.0
        return float(self.user_factors[u_idx] @ self.item_factors[i_idx])

    def _synthesize_factor(self, user_id: int, live_ratings: Mapping[int, float]) -> np.ndarray | None:
        """Rating-weighted average of the factors of the live-rated, known items."""
        key = tuple(sorted((int(i), float(w)) for i, w in live_ratings.items()))

        with self._cold_start_lock:
            cached = self._cold_start_factors.get(user_id)
            if cached is not None and cached[0] == key:
                self._cold_start_factors.move_to_end(user_id)
                return cached[1]

            known = [(self.item_to_idx[i], w) for i, w in key if i in self.item_to_idx]
            if not known:
                return None

            idx = np.array([i for i, _ in known], dtype=np.int64)
            weights = np.array([w for _, w in known], dtype=np.float64)
            factor = weights @ self.item_factors[idx]
            total = weights.sum()
            if total > 0:
                factor = factor / total

            self._cold_start_factors[user_id] = (key, factor)
            self._cold_start_factors.move_to_end(user_id)
            while len(self._cold_start_factors) > self.max_cold_start_users:
                self._cold_start_factors.popitem(last=False)
            logger.debug("Synthesized factor for cold-start user %d from %d items", user_id, len(known))
            return factor

    def recommend_top_n(
        self,
        user_id: int,
        n: int,
        exclude_items: Iterable[int] | None = None,
        live_ratings: Mapping[int, float] | None = None,
    ) -> List[Recommendation]:
        if n <= 0 or self.item_factors is None or self._item_ids.size == 0:
            return []

        user_id = int(user_id)
        blocked = set(as_item_set(exclude_items))

        u_idx = self.user_to_idx.get(user_id)
        if u_idx is not None:
            user_vec = self.user_factors[u_idx]
            start, end = self._R.indptr[u_idx], self._R.indptr[u_idx + 1]
            blocked.update(self._item_ids[self._R.indices[start:end]].tolist())
        elif live_ratings:
            user_vec = self._synthesize_factor(user_id, live_ratings)
            if user_vec is None:
                return []
            blocked.update(int(i) for i in live_ratings)
        else:
            return []

        if blocked:
            blocked_arr = np.fromiter(blocked, dtype=np.int64, count=len(blocked))
            candidates = np.flatnonzero(~np.isin(self._item_ids, blocked_arr))
        else:
            candidates = np.arange(self._item_ids.size)
        if candidates.size == 0:
            return []

        raw = self.item_factors[candidates] @ user_vec
        lo, hi = float(raw.min()), float(raw.max())
        if hi - lo > 0:
            scaled = (raw - lo) / (hi - lo) * 4.0 + 1.0
        else:
            scaled = np.full(raw.shape, 3.0)

        return self.top_k_from_scores(
            item_ids=self._item_ids[candidates],
            scores=scaled,
            k=n,
            explanation=self.explanation,
        )

    def to_snapshot(self) -> MatrixFactorizationSnapshot:
        if self.user_factors is None:
            raise InvalidInput("cannot snapshot an unfitted model")
        coo = self._R.tocoo()
        user_ids = [0] * len(self.user_to_idx)
        for uid, idx in self.user_to_idx.items():
            user_ids[idx] = uid
        return MatrixFactorizationSnapshot(
            n_factors=self.n_factors,
            n_iterations=self.n_iterations,
            regularization=self.regularization,
            random_state=self.random_state,
            user_ids=user_ids,
            item_ids=self._item_ids.tolist(),
            user_factors=self.user_factors.tolist(),
            item_factors=self.item_factors.tolist(),
            train_pairs=list(zip(
                [user_ids[r] for r in coo.row.tolist()],
                self._item_ids[coo.col].tolist(),
            )),
            loss_history=list(self.loss_history_),
        )

    @classmethod
    def from_snapshot(cls, snapshot: MatrixFactorizationSnapshot) -> "MatrixFactorizationModel":
        model = cls(
            n_factors=snapshot.n_factors,
            n_iterations=snapshot.n_iterations,
            regularization=snapshot.regularization,
            random_state=snapshot.random_state,
        )
        model.user_to_idx = {int(u): i for i, u in enumerate(snapshot.user_ids)}
        model.item_to_idx = {int(m): i for i, m in enumerate(snapshot.item_ids)}
        model._item_ids = np.asarray(snapshot.item_ids, dtype=np.int64)
        model.user_factors = np.asarray(snapshot.user_factors, dtype=np.float64).reshape(
            len(snapshot.user_ids), snapshot.n_factors
        )
        model.item_factors = np.asarray(snapshot.item_factors, dtype=np.float64).reshape(
            len(snapshot.item_ids), snapshot.n_factors
        )

        rows = np.array([model.user_to_idx[u] for u, _ in snapshot.train_pairs], dtype=np.int64)
        cols = np.array([model.item_to_idx[m] for _, m in snapshot.train_pairs], dtype=np.int64)
        model._R = sparse.csr_matrix(
            (np.ones(len(rows), dtype=np.float64), (rows, cols)),
            shape=(len(snapshot.user_ids), len(snapshot.item_ids)),
        )
        model.loss_history_ = list(snapshot.loss_history)
        return model
