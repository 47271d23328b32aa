"""
Matcher catalog: maps a document language id to the extraction rules used to
find class lists in it.

User configuration (the `classRegex` setting) maps each language id to one of:

    "regex"                                   one pattern
    ["outer", "inner", ...]                   one rule narrowed stage by stage
    {"regex": ..., "separator": ..., "replacement": ...}
    [ {...}, "regex", [...], ... ]            several independent rules

Languages without an entry fall back to the "html" entry.
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import structlog

from rawreorder.models import ExtractionRule

logger = structlog.get_logger(__name__)

DEFAULT_LANGUAGE = "html"

_HTML_CLASS = r"""\bclass(?:Name)?\s*=\s*["']([_a-zA-Z0-9\s\-:/\[\]\.!]+)["']"""
_CSS_APPLY = r"""\B@apply\s+([_a-zA-Z0-9\s\-:/\[\]\.!]+);"""
_JS_CLASS = [
    r"""(?:\b(?:class(?:Name)?|tw)\s*=\s*(?:(?:\{([\w\s!?_\-:/${}()\[\]"'`,.]+)\})|(["'`][\w\s_\-:/\[\]\.!]+["'`])))"""
    r"""|(?:\btw(`[\w\s!?_\-:/${}()\[\]"',.]+`))""",
    r"""(?:["'`]([\w\s_\-:/${}()\[\]"\.!]+)["'`])""",
]

DEFAULT_CLASS_REGEX: Dict[str, Any] = {
    "html": _HTML_CLASS,
    "css": _CSS_APPLY,
    "scss": _CSS_APPLY,
    "javascript": _JS_CLASS,
    "javascriptreact": _JS_CLASS,
    "typescript": _JS_CLASS,
    "typescriptreact": _JS_CLASS,
    "vue": _HTML_CLASS,
    "svelte": _HTML_CLASS,
    "astro": _HTML_CLASS,
    "erb": _HTML_CLASS,
    "php": _HTML_CLASS,
    "twig": _HTML_CLASS,
    "markdown": _HTML_CLASS,
}


LANGUAGE_BY_SUFFIX = {
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".scss": "scss",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascriptreact",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".vue": "vue",
    ".svelte": "svelte",
    ".astro": "astro",
    ".erb": "erb",
    ".php": "php",
    ".twig": "twig",
    ".md": "markdown",
}


def guess_language(path: Path) -> str:
    """Editor language id for a file, by suffix. Unknown suffixes are treated as html."""
    return LANGUAGE_BY_SUFFIX.get(Path(path).suffix.lower(), DEFAULT_LANGUAGE)


def _is_list_of_strings(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def build_rule(value: Any) -> Optional[ExtractionRule]:
    """
    Normalises one catalog entry into an ExtractionRule.

    Returns None when the entry carries no pattern at all; such entries match
    nothing, so callers simply drop them.
    """
    if isinstance(value, str):
        return ExtractionRule(pattern=value)

    if _is_list_of_strings(value):
        if not value:
            return None
        return ExtractionRule(pattern=value[0], narrowing=tuple(value[1:]))

    if isinstance(value, Mapping):
        regex = value.get("regex")
        if isinstance(regex, str):
            stages = [regex]
        elif _is_list_of_strings(regex):
            stages = list(regex)
        else:
            stages = []

        if not stages:
            logger.debug("Ignoring class regex entry without a pattern", entry=dict(value))
            return None

        separator = value.get("separator") if isinstance(value.get("separator"), str) else None
        replacement = value.get("replacement") or separator
        return ExtractionRule(
            pattern=stages[0],
            narrowing=tuple(stages[1:]),
            separator=separator,
            replacement=replacement,
        )

    if value is not None:
        logger.warning(f"Ignoring unsupported class regex entry of type {type(value).__name__}")
    return None


def build_rules(value: Any) -> List[ExtractionRule]:
    """
    Normalises a language's catalog entry into an ordered list of rules.

    A plain list of strings is a single multi-stage rule; any other list holds one
    rule per element.
    """
    if value is None:
        return []

    if isinstance(value, list):
        if not value:
            return []
        if not _is_list_of_strings(value):
            return [rule for rule in (build_rule(v) for v in value) if rule is not None]

    rule = build_rule(value)
    return [rule] if rule is not None else []


def resolve_rules(
    language_id: str,
    catalog: Optional[Mapping[str, Any]],
    default: str = DEFAULT_LANGUAGE,
) -> List[ExtractionRule]:
    """
    Returns the extraction rules for `language_id`, falling back to the entry for
    `default` when the language has none. Never raises; an empty list is valid.
    """
    catalog = catalog or {}
    if language_id in catalog:
        entry = catalog[language_id]
    else:
        logger.debug(f"No class regex for '{language_id}', using '{default}'")
        entry = catalog.get(default)
    return build_rules(entry)
