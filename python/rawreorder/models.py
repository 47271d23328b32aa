from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_HIGHLIGHT_COLOR = "textLink.activeForeground"
DEFAULT_HIGHLIGHT_TIMEOUT_MS = 7000


class ExtractionRule(BaseModel):
    """
    One way of finding class lists in a document.

    `pattern` locates candidates; each entry of `narrowing` is applied inside the
    value captured by the previous stage. The class list is the first capture
    group that participated in the final stage's match.
    """

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(..., description="Regular expression source locating a class list.")
    narrowing: Tuple[str, ...] = Field(default=(), description="Further patterns applied inside each capture.")
    separator: Optional[str] = Field(None, description="Regex source splitting classes. None means whitespace.")
    replacement: Optional[str] = Field(None, description="String used to join the sorted classes.")

    @property
    def stages(self) -> Tuple[str, ...]:
        return (self.pattern, *self.narrowing)


class Match(BaseModel):
    """A candidate class list found by an ExtractionRule. Offsets are absolute."""

    model_config = ConfigDict(frozen=True)

    text: str
    start: int = Field(..., ge=0)
    value: str
    value_start: int = Field(..., ge=0)

    @property
    def end(self) -> int:
        return self.start + len(self.text)

    @property
    def value_end(self) -> int:
        return self.value_start + len(self.value)


class TokenMove(BaseModel):
    """
    A class that is not part of the common subsequence between the original and
    the sorted list. `char_start` is relative to the sorted string, -1 if unknown.
    """

    model_config = ConfigDict(frozen=True)

    token: str
    char_start: int = Field(..., ge=-1)

    @property
    def locatable(self) -> bool:
        return self.char_start != -1


class HighlightConfig(BaseModel):
    """Highlight colour and lifetime. Each activation cycle keeps its own snapshot."""

    model_config = ConfigDict(frozen=True)

    color: str = DEFAULT_HIGHLIGHT_COLOR
    timeout_ms: int = Field(DEFAULT_HIGHLIGHT_TIMEOUT_MS, gt=0)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


class ReplacementEdit(BaseModel):
    """Replace document[start:end] with new_text."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)
    new_text: str

    @property
    def delta(self) -> int:
        return len(self.new_text) - (self.end - self.start)

    def overlaps(self, other: "ReplacementEdit") -> bool:
        return self.start < other.end and self.end > other.start
