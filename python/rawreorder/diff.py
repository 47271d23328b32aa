import re
from typing import Dict, List, Optional, Sequence, Set, Tuple

import structlog
from diff_match_patch import diff_match_patch

from rawreorder.models import TokenMove

logger = structlog.get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def split_classes(text: str) -> List[str]:
    return [token for token in _WHITESPACE.split(text) if token]


def longest_common_subsequence(a: Sequence[str], b: Sequence[str]) -> List[str]:
    """
    Classic O(len(a) * len(b)) LCS table over token equality.

    When both directions tie during backtracking the token from `a` is dropped
    first, so the result is deterministic for a given pair of inputs.
    """
    rows, cols = len(a), len(b)
    dp = [[0] * (cols + 1) for _ in range(rows + 1)]

    for i in range(1, rows + 1):
        for j in range(1, cols + 1):
            if a[i - 1] == b[j - 1]:
                dp[i][j] = dp[i - 1][j - 1] + 1
            else:
                dp[i][j] = max(dp[i - 1][j], dp[i][j - 1])

    common: List[str] = []
    i, j = rows, cols
    while i > 0 and j > 0:
        if a[i - 1] == b[j - 1]:
            common.append(a[i - 1])
            i -= 1
            j -= 1
        elif dp[i - 1][j] >= dp[i][j - 1]:
            i -= 1
        else:
            j -= 1

    common.reverse()
    return common


def _locate_tokens(text: str, tokens: Sequence[str]) -> List[int]:
    """
    Character offset of each token in `text`. A per-token cursor makes repeated
    classes resolve to successive occurrences. Only whole, whitespace-delimited
    occurrences count, so "p-2" is never found inside "md:p-2".
    """
    cursors: Dict[str, int] = {}
    offsets: List[int] = []
    for token in tokens:
        pattern = re.compile(r"(?<!\S)" + re.escape(token) + r"(?!\S)")
        m = pattern.search(text, cursors.get(token, 0))
        if m is None:
            offsets.append(-1)
            continue
        offsets.append(m.start())
        cursors[token] = m.end()
    return offsets


def find_moved_classes(original: Optional[str], replacement: Optional[str]) -> List[TokenMove]:
    """
    Returns the classes of `replacement` that are not part of its longest common
    subsequence with `original`, left to right, with their offsets in `replacement`.

    Membership is decided on class *values*: a class that appears anywhere in the
    common subsequence is never reported, even if it occurs more than once and
    only one of its occurrences was kept in place.
    """
    if not original or not replacement:
        logger.debug("One of the class strings is empty, nothing moved")
        return []

    before = split_classes(original)
    after = split_classes(replacement)
    common: Set[str] = set(longest_common_subsequence(before, after))

    offsets = _locate_tokens(replacement, after)
    return [
        TokenMove(token=token, char_start=offset)
        for token, offset in zip(after, offsets)
        if token not in common
    ]


# ---------------------------------------------------------------------------
# Word-level change summaries
# ---------------------------------------------------------------------------


def summarise_changes(original: str, replacement: str) -> List[Tuple[int, str]]:
    """
    Word-level diff of two strings as (op, text) hunks, op being -1, 0 or 1
    (delete, equal, insert). Whitespace runs count as words.
    """
    dmp = diff_match_patch()

    runs: List[str] = []
    encoded_original = _encode_runs(original, runs)
    encoded_replacement = _encode_runs(replacement, runs)

    diffs = dmp.diff_main(encoded_original, encoded_replacement, False)
    dmp.diff_cleanupSemantic(diffs)
    dmp.diff_charsToLines(diffs, runs)

    return [(op, text) for op, text in diffs if text]


_RUN = re.compile(r"\s+|\S+")


def _encode_runs(text: str, runs: List[str]) -> str:
    """
    Maps each class or whitespace run of `text` to one code point, so the diff
    works on whole classes. `runs` is the shared code point table for both sides;
    new runs are appended to it.
    """
    codes: Dict[str, int] = {run: idx for idx, run in enumerate(runs)}
    encoded = []
    for run in _RUN.findall(text):
        if run not in codes:
            codes[run] = len(runs)
            runs.append(run)
        encoded.append(chr(codes[run]))
    return "".join(encoded)
