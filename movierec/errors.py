"""Exception taxonomy shared by the data, model and serving layers."""


class RecommenderError(Exception):
    """Base class for all errors raised by movierec."""


class InvalidInput(RecommenderError, ValueError):
    """Malformed ids, out-of-range ratings or bad parameters."""


class MalformedRecord(InvalidInput):
    """A raw dataset record could not be parsed."""

    def __init__(self, source: str, line_no: int, reason: str) -> None:
        super().__init__(f"{source}:{line_no}: {reason}")
        self.source = source
        self.line_no = line_no
        self.reason = reason


class NotFound(RecommenderError, KeyError):
    """A requested model, item or user does not exist."""

    def __str__(self) -> str:
        # KeyError.__str__ quotes its argument
        return str(self.args[0]) if self.args else ""


class ModelNotFound(NotFound):
    def __init__(self, model_name: str) -> None:
        super().__init__(f"Model {model_name} not found")
        self.model_name = model_name


class ItemNotFound(NotFound):
    def __init__(self, item_id: int) -> None:
        super().__init__(f"Movie {item_id} not found")
        self.item_id = item_id


class DatasetUnavailable(RecommenderError):
    """Queried before the dataset finished loading."""

    def __init__(self, message: str = "Dataset not loaded") -> None:
        super().__init__(message)


class SnapshotError(RecommenderError):
    """A model snapshot is unreadable, of an unknown kind or of the wrong version."""
