"""Save and restore fitted models as versioned JSON snapshots.

A snapshot file wraps one model snapshot with the time it was written::

    {"saved_at": "...", "snapshot": {"model": "popularity", "version": 1, ...}}

The ``model`` tag selects the schema; unknown tags and other versions are
rejected with :class:`~movierec.errors.SnapshotError`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Iterable, Union

from pydantic import BaseModel, Field, ValidationError

from movierec.errors import SnapshotError
from movierec.models.als import MatrixFactorizationModel
from movierec.models.base import RecommenderModel
from movierec.models.collaborative_filtering import ItemItemCFModel
from movierec.models.graph import GraphBasedModel
from movierec.models.popularity import PopularityModel
from movierec.models.snapshots import (
    GraphBasedSnapshot,
    ItemItemCFSnapshot,
    MatrixFactorizationSnapshot,
    PopularitySnapshot,
)

logger = logging.getLogger(__name__)

ModelSnapshot = Annotated[
    Union[PopularitySnapshot, MatrixFactorizationSnapshot, ItemItemCFSnapshot, GraphBasedSnapshot],
    Field(discriminator="model"),
]

SNAPSHOT_MODELS = {
    PopularityModel.name: PopularityModel,
    MatrixFactorizationModel.name: MatrixFactorizationModel,
    ItemItemCFModel.name: ItemItemCFModel,
    GraphBasedModel.name: GraphBasedModel,
}


class SnapshotFile(BaseModel):
    saved_at: datetime
    snapshot: ModelSnapshot


def save_snapshot(model: RecommenderModel, path: str | Path) -> Path:
    """Write a fitted model's snapshot as JSON, creating parent directories."""
    if model.name not in SNAPSHOT_MODELS:
        raise SnapshotError(f"Model {model.name} does not support snapshots")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = SnapshotFile(saved_at=datetime.now(timezone.utc), snapshot=model.to_snapshot())
    path.write_text(payload.model_dump_json(), encoding="utf-8")
    logger.info("Saved %s snapshot to %s", model.name, path)
    return path


def read_snapshot_file(path: str | Path) -> SnapshotFile:
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e
    try:
        return SnapshotFile.model_validate_json(raw)
    except ValidationError as e:
        raise SnapshotError(f"Invalid snapshot {path}: {e.error_count()} validation error(s)") from e


def restore_model(snapshot: ModelSnapshot) -> RecommenderModel:
    try:
        model_cls = SNAPSHOT_MODELS[snapshot.model]
    except KeyError:
        raise SnapshotError(f"Unknown snapshot model {snapshot.model!r}") from None
    return model_cls.from_snapshot(snapshot)


def load_snapshot(path: str | Path) -> RecommenderModel:
    """Read, validate and restore the model stored at ``path``.

    Raises
    ------
    SnapshotError
        If the file is missing, not JSON, of an unknown model kind or of
        another snapshot version.
    """
    model = restore_model(read_snapshot_file(path).snapshot)
    logger.info("Loaded %s snapshot from %s", model.name, path)
    return model


class SnapshotStore:
    """One ``<model name>.json`` snapshot per model in a directory."""

    def __init__(self, directory: str | Path = "./data/models") -> None:
        self.directory = Path(directory)

    def path_for(self, model_name: str) -> Path:
        return self.directory / f"{model_name}.json"

    def exists(self, model_name: str) -> bool:
        return self.path_for(model_name).is_file()

    def all_exist(self, model_names: Iterable[str]) -> bool:
        return all(self.exists(name) for name in model_names)

    def save(self, model: RecommenderModel) -> Path:
        return save_snapshot(model, self.path_for(model.name))

    def load(self, model_name: str) -> RecommenderModel:
        return load_snapshot(self.path_for(model_name))

    def age_seconds(self, model_name: str) -> float | None:
        """Seconds since the snapshot was saved, None when there is none."""
        if not self.exists(model_name):
            return None
        saved_at = read_snapshot_file(self.path_for(model_name)).saved_at
        if saved_at.tzinfo is None:
            saved_at = saved_at.replace(tzinfo=timezone.utc)
        return (datetime.now(timezone.utc) - saved_at).total_seconds()

    def clear(self) -> int:
        """Delete every snapshot in the directory and return how many were removed."""
        if not self.directory.is_dir():
            return 0
        removed = 0
        for path in self.directory.glob("*.json"):
            path.unlink()
            removed += 1
        logger.info("Cleared %d cached snapshots from %s", removed, self.directory)
        return removed
