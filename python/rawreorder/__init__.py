from importlib.metadata import PackageNotFoundError, version

from rawreorder.catalog import resolve_rules
from rawreorder.commands import ReorderExtension, SortOutcome
from rawreorder.diff import find_moved_classes
from rawreorder.extract import iter_matches
from rawreorder.highlight import AnnotationLifecycle
from rawreorder.models import ExtractionRule, HighlightConfig, Match, TokenMove
from rawreorder.sorting import get_ranking_context, sort_classes

try:
    __version__ = version("rawreorder")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = [
    "AnnotationLifecycle",
    "ExtractionRule",
    "HighlightConfig",
    "Match",
    "ReorderExtension",
    "SortOutcome",
    "TokenMove",
    "find_moved_classes",
    "get_ranking_context",
    "iter_matches",
    "resolve_rules",
    "sort_classes",
    "__version__",
]
