"""
Default canonicaliser and ranking-context provider.

The canonical order is data: a RankingContext carries an ordered table of utility
prefixes and variants, and `sort_classes` stably orders a class list by it. The
context is tied to a Tailwind project config so that files outside a Tailwind
project are left alone. A JSON config (given as an explicit override) may supply
its own tables.
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, Union

import structlog

from rawreorder.errors import ConfigNotFoundError
from rawreorder.extract import compile_pattern

logger = structlog.get_logger(__name__)

CONFIG_FILENAMES = (
    "tailwind.config.js",
    "tailwind.config.cjs",
    "tailwind.config.mjs",
    "tailwind.config.ts",
)

# Utility prefixes in output order. A class ranks by the longest entry that is
# either the whole utility or followed by "-".
DEFAULT_ORDER: Tuple[str, ...] = (
    "container", "sr-only", "not-sr-only", "pointer-events", "visible", "invisible", "collapse",
    "static", "fixed", "absolute", "relative", "sticky",
    "inset", "inset-x", "inset-y", "start", "end", "top", "right", "bottom", "left",
    "isolate", "isolation", "z", "order", "col", "col-span", "col-start", "col-end",
    "row", "row-span", "row-start", "row-end", "float", "clear",
    "m", "mx", "my", "ms", "me", "mt", "mr", "mb", "ml",
    "box", "line-clamp", "block", "inline-block", "inline", "flex", "inline-flex", "table",
    "inline-table", "grid", "inline-grid", "contents", "list-item", "hidden",
    "aspect", "size", "h", "max-h", "min-h", "w", "min-w", "max-w",
    "flex-1", "flex-auto", "flex-initial", "flex-none", "shrink", "grow", "basis",
    "table-auto", "table-fixed", "caption", "border-collapse", "border-separate", "border-spacing",
    "origin", "translate-x", "translate-y", "rotate", "skew-x", "skew-y", "scale", "scale-x", "scale-y",
    "transform", "animate", "cursor", "touch", "select", "resize", "snap", "scroll-m", "scroll-p",
    "list", "appearance", "columns", "break-before", "break-inside", "break-after",
    "auto-cols", "grid-flow", "auto-rows", "grid-cols", "grid-rows",
    "flex-row", "flex-row-reverse", "flex-col", "flex-col-reverse",
    "flex-wrap", "flex-wrap-reverse", "flex-nowrap",
    "place-content", "place-items", "content", "items", "justify", "justify-items", "place-self",
    "gap", "gap-x", "gap-y", "space-x", "space-y", "divide-x", "divide-y", "divide",
    "self", "justify-self", "overflow", "overflow-x", "overflow-y", "overscroll",
    "scroll", "truncate", "text-ellipsis", "text-clip", "whitespace", "text-wrap", "break",
    "rounded", "rounded-t", "rounded-r", "rounded-b", "rounded-l",
    "rounded-tl", "rounded-tr", "rounded-br", "rounded-bl",
    "border", "border-x", "border-y", "border-t", "border-r", "border-b", "border-l",
    "border-solid", "border-dashed", "border-dotted", "border-double", "border-none",
    "bg", "from", "via", "to", "decoration-clone", "box-decoration",
    "fill", "stroke", "object", "p", "px", "py", "ps", "pe", "pt", "pr", "pb", "pl",
    "text-left", "text-center", "text-right", "text-justify", "text-start", "text-end", "indent",
    "align", "font", "text", "leading", "tracking",
    "uppercase", "lowercase", "capitalize", "normal-case",
    "italic", "not-italic", "ordinal", "slashed-zero", "lining-nums", "tabular-nums",
    "underline", "overline", "line-through", "no-underline", "decoration", "underline-offset",
    "antialiased", "subpixel-antialiased", "placeholder", "caret", "accent",
    "opacity", "bg-blend", "mix-blend", "shadow", "outline", "ring", "ring-offset",
    "blur", "brightness", "contrast", "drop-shadow", "grayscale", "hue-rotate", "invert",
    "saturate", "sepia", "filter", "backdrop",
    "transition", "delay", "duration", "ease", "will-change",
)

DEFAULT_VARIANTS: Tuple[str, ...] = (
    "first", "last", "only", "odd", "even", "first-of-type", "last-of-type",
    "empty", "disabled", "enabled", "checked", "indeterminate", "default", "required",
    "valid", "invalid", "in-range", "out-of-range", "placeholder-shown", "autofill",
    "read-only", "open", "before", "after", "first-letter", "first-line", "marker",
    "selection", "file", "backdrop", "placeholder",
    "sm", "md", "lg", "xl", "2xl",
    "portrait", "landscape", "ltr", "rtl", "dark", "print",
    "group-hover", "group-focus", "peer-hover", "peer-focus",
    "focus-within", "hover", "focus", "focus-visible", "active", "visited", "target",
    "aria-disabled", "aria-checked", "aria-expanded", "aria-selected",
)


@dataclass(frozen=True)
class RankingContext:
    """Everything the canonicaliser needs to order classes for one project."""

    config_path: Path
    order: Tuple[str, ...] = DEFAULT_ORDER
    variants: Tuple[str, ...] = DEFAULT_VARIANTS
    remove_duplicates: bool = True
    _order_index: Dict[str, int] = field(init=False, repr=False, compare=False)
    _variant_index: Dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_order_index", {name: i for i, name in enumerate(self.order)})
        object.__setattr__(self, "_variant_index", {name: i for i, name in enumerate(self.variants)})

    def utility_rank(self, utility: str) -> Optional[int]:
        """Rank of a bare utility (no variants), or None if the utility is unknown."""
        utility = utility.lstrip("!")
        if utility.startswith("-"):
            utility = utility[1:]
        candidate = utility
        while candidate:
            if candidate in self._order_index:
                return self._order_index[candidate]
            cut = candidate.rfind("-")
            if cut <= 0:
                break
            candidate = candidate[:cut]
        return None

    def variant_rank(self, variants: Sequence[str]) -> Tuple[int, ...]:
        unknown = len(self.variants)
        return tuple(sorted((self._variant_index.get(v, unknown) for v in variants), reverse=True))

    def sort_key(self, class_name: str) -> Tuple:
        variants, utility = split_variants(class_name)
        rank = self.utility_rank(utility)
        if rank is None:
            return (0,)
        return (1, len(variants), self.variant_rank(variants), rank)


def split_variants(class_name: str) -> Tuple[List[str], str]:
    """Splits "md:hover:p-2" into (["md", "hover"], "p-2"), ignoring ':' inside brackets."""
    parts: List[str] = []
    depth = 0
    current = []
    for ch in class_name:
        if ch == "[":
            depth += 1
        elif ch == "]" and depth:
            depth -= 1
        if ch == ":" and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts[:-1], parts[-1]


class Canonicalizer(Protocol):
    def __call__(
        self,
        text: str,
        *,
        separator: Optional[str] = None,
        replacement: Optional[str] = None,
        context: RankingContext,
    ) -> str: ...


_LEADING_WS = re.compile(r"^\s*")
_TRAILING_WS = re.compile(r"\s*$")


def _split_tokens(core: str, separator: Optional[str]) -> Tuple[List[str], List[str]]:
    pattern = compile_pattern(separator) if separator else compile_pattern(r"\s+")
    tokens: List[str] = []
    separators: List[str] = []
    last = 0
    for m in pattern.finditer(core):
        if m.end() == m.start():
            continue
        tokens.append(core[last : m.start()])
        separators.append(m.group(0))
        last = m.end()
    tokens.append(core[last:])

    # Drop empty tokens (runs of separators) together with the separator after them.
    kept_tokens: List[str] = []
    kept_separators: List[str] = []
    for idx, token in enumerate(tokens):
        if not token:
            continue
        kept_tokens.append(token)
        if idx < len(separators):
            kept_separators.append(separators[idx])
    return kept_tokens, kept_separators[: max(len(kept_tokens) - 1, 0)]


def sort_classes(
    text: str,
    *,
    separator: Optional[str] = None,
    replacement: Optional[str] = None,
    context: RankingContext,
) -> str:
    """
    Returns `text` with its classes in canonical order.

    Leading and trailing whitespace is kept. Separators stay where they were
    unless a `replacement` join string is given. Text carrying template markers
    ("{{") is returned untouched.
    """
    if not text or "{{" in text:
        return text

    prefix = _LEADING_WS.match(text).group(0)
    if len(prefix) == len(text):
        return text
    suffix = _TRAILING_WS.search(text).group(0)
    core = text[len(prefix) : len(text) - len(suffix)]

    tokens, separators = _split_tokens(core, separator)

    if context.remove_duplicates:
        seen = set()
        unique = []
        for token in tokens:
            if token in seen:
                continue
            seen.add(token)
            unique.append(token)
        separators = separators[: max(len(unique) - 1, 0)]
        tokens = unique

    ordered = [token for _, token in sorted(enumerate(tokens), key=lambda p: (context.sort_key(p[1]), p[0]))]

    if replacement is not None:
        body = replacement.join(ordered)
    else:
        pieces = []
        for idx, token in enumerate(ordered):
            pieces.append(token)
            if idx < len(separators):
                pieces.append(separators[idx])
        body = "".join(pieces)

    return prefix + body + suffix


def _load_json_context(path: Path) -> RankingContext:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return RankingContext(
        config_path=path,
        order=tuple(data.get("order") or DEFAULT_ORDER),
        variants=tuple(data.get("variants") or DEFAULT_VARIANTS),
        remove_duplicates=bool(data.get("removeDuplicates", True)),
    )


def find_config_file(start: Path) -> Optional[Path]:
    """Walks up from `start` looking for a Tailwind config file."""
    directory = start if start.is_dir() else start.parent
    for candidate_dir in (directory, *directory.parents):
        for name in CONFIG_FILENAMES:
            candidate = candidate_dir / name
            if candidate.is_file():
                return candidate
    return None


def get_ranking_context(
    file_path: Union[str, Path],
    override: Optional[Union[str, Path]] = None,
) -> Optional[RankingContext]:
    """
    Resolves the ranking context for a file, or None when no config is found.

    An explicit override must exist; it is not searched around.
    """
    if override:
        config_path = Path(override)
        if not config_path.is_file():
            logger.warning(f"Configured Tailwind config does not exist: {config_path}")
            return None
    else:
        config_path = find_config_file(Path(file_path).resolve())
        if config_path is None:
            logger.info(f"No Tailwind config found for {file_path}")
            return None

    if config_path.suffix == ".json":
        try:
            return _load_json_context(config_path)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read ranking config {config_path}: {e}")
            return None

    return RankingContext(config_path=config_path)


def require_ranking_context(
    file_path: Union[str, Path],
    override: Optional[Union[str, Path]] = None,
) -> RankingContext:
    context = get_ranking_context(file_path, override)
    if context is None:
        raise ConfigNotFoundError(str(file_path))
    return context
