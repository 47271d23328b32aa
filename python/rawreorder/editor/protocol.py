"""
Capability surface the reorder commands need from a host editor.

Offsets are character offsets into the full document text. A Position is a
zero-based (line, character) pair, as editors report them.
"""

from pathlib import Path
from typing import Any, Callable, List, NamedTuple, Optional, Protocol, Sequence, Tuple

from rawreorder.editor.events import (
    ConfigurationChangeEvent,
    Disposable,
    DocumentChangeEvent,
    DocumentWillSaveEvent,
)
from rawreorder.models import ReplacementEdit


class Position(NamedTuple):
    line: int
    character: int


class TextDocument(Protocol):
    uri: str
    language_id: str
    file_name: str

    def get_text(self, span: Optional[Tuple[int, int]] = None) -> str: ...

    def position_at(self, offset: int) -> Position: ...

    def offset_at(self, position: Position) -> int: ...


class Annotation(Protocol):
    """A styled range shown over a document. Disposing it removes it from view."""

    def dispose(self) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle: ...


class EditorHost(Protocol):
    def active_document(self) -> Optional[TextDocument]: ...

    def active_selection(self) -> Optional[Tuple[int, int]]: ...

    def workspace_folders(self) -> List[Path]: ...

    def workspace_folder_for(self, document: TextDocument) -> Optional[Path]: ...

    def apply_edits(self, document: TextDocument, edits: Sequence[ReplacementEdit]) -> bool: ...

    def set_annotation(self, document: TextDocument, start: Position, end: Position, color: str) -> Annotation: ...

    def on_did_change_text_document(self, listener: Callable[[DocumentChangeEvent], Any]) -> Disposable: ...

    def on_will_save_text_document(self, listener: Callable[[DocumentWillSaveEvent], Any]) -> Disposable: ...

    def on_did_change_configuration(self, listener: Callable[[ConfigurationChangeEvent], Any]) -> Disposable: ...

    def show_information_message(self, message: str) -> None: ...

    def show_error_message(self, message: str) -> None: ...
