"""spamsift package initialisation."""

from importlib import metadata

from .codec import CorruptDataError
from .model import ClassifierModel, ModelNotTrainedError, load_model, new_model
from .types import Explanation, Indicator, ModelStats, TokenDetail, Verdict


def _discover_version() -> str:
    """Return the installed package version, falling back to dev marker."""
    try:
        return metadata.version("spamsift")
    except metadata.PackageNotFoundError:  # pragma: no cover - occurs in source checkouts
        return "0.0.0"


__all__ = [
    "__version__",
    "ClassifierModel",
    "CorruptDataError",
    "Explanation",
    "Indicator",
    "ModelNotTrainedError",
    "ModelStats",
    "TokenDetail",
    "Verdict",
    "load_model",
    "new_model",
]
__version__ = _discover_version()
