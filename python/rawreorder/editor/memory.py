"""
In-memory editor host.

Backs the CLI and the MCP server, where a file is loaded into a buffer, sorted and
written back, and the test-suite, which drives edits, undos, saves and
configuration changes by hand.
"""

import bisect
from itertools import count
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from rawreorder.editor.events import (
    ConfigurationChangeEvent,
    Disposable,
    DocumentChangeEvent,
    DocumentWillSaveEvent,
    EventEmitter,
)
from rawreorder.editor.protocol import Position
from rawreorder.models import ReplacementEdit

logger = structlog.get_logger(__name__)

_doc_ids = count(1)


class MemoryDocument:
    def __init__(
        self,
        text: str,
        language_id: str = "html",
        file_name: str = "untitled",
        uri: Optional[str] = None,
    ):
        self.language_id = language_id
        self.file_name = file_name
        self.uri = uri or (Path(file_name).resolve().as_uri() if file_name != "untitled" else f"untitled:{next(_doc_ids)}")
        self.version = 1
        self._text = ""
        self._line_starts: List[int] = [0]
        self._set_text(text)

    def _set_text(self, text: str):
        self._text = text
        starts = [0]
        for idx, ch in enumerate(text):
            if ch == "\n":
                starts.append(idx + 1)
        self._line_starts = starts

    def get_text(self, span: Optional[Tuple[int, int]] = None) -> str:
        if span is None:
            return self._text
        start, end = span
        return self._text[start:end]

    def position_at(self, offset: int) -> Position:
        offset = min(max(offset, 0), len(self._text))
        line = bisect.bisect_right(self._line_starts, offset) - 1
        return Position(line, offset - self._line_starts[line])

    def offset_at(self, position: Position) -> int:
        line = min(max(position.line, 0), len(self._line_starts) - 1)
        line_start = self._line_starts[line]
        if line + 1 < len(self._line_starts):
            line_end = self._line_starts[line + 1] - 1
        else:
            line_end = len(self._text)
        return min(max(line_start + position.character, line_start), line_end)

    def __repr__(self) -> str:
        return f"MemoryDocument(uri={self.uri!r}, language_id={self.language_id!r}, version={self.version})"


class MemoryAnnotation:
    def __init__(self, host: "MemoryHost", document: MemoryDocument, start: Position, end: Position, color: str):
        self.host = host
        self.document = document
        self.start = start
        self.end = end
        self.color = color
        self.disposed = False

    @property
    def text(self) -> str:
        return self.document.get_text((self.document.offset_at(self.start), self.document.offset_at(self.end)))

    def dispose(self) -> None:
        if self.disposed:
            return
        self.disposed = True
        if self in self.host.annotations:
            self.host.annotations.remove(self)


class MemoryHost:
    """EditorHost backed by plain Python objects."""

    def __init__(self, workspace_root: Optional[Path] = None):
        self.workspace_root = Path(workspace_root).resolve() if workspace_root else None
        self.documents: List[MemoryDocument] = []
        self.annotations: List[MemoryAnnotation] = []
        self.info_messages: List[str] = []
        self.error_messages: List[str] = []
        self._active: Optional[MemoryDocument] = None
        self._selection: Optional[Tuple[int, int]] = None
        self._did_change = EventEmitter[DocumentChangeEvent]("onDidChangeTextDocument")
        self._will_save = EventEmitter[DocumentWillSaveEvent]("onWillSaveTextDocument")
        self._did_change_configuration = EventEmitter[ConfigurationChangeEvent]("onDidChangeConfiguration")

    # -- documents ----------------------------------------------------------

    def open_document(self, text: str, language_id: str = "html", file_name: str = "untitled") -> MemoryDocument:
        document = MemoryDocument(text, language_id=language_id, file_name=file_name)
        self.documents.append(document)
        self._active = document
        self._selection = None
        return document

    def active_document(self) -> Optional[MemoryDocument]:
        return self._active

    def select(self, start: int, end: int):
        self._selection = (min(start, end), max(start, end))

    def active_selection(self) -> Optional[Tuple[int, int]]:
        return self._selection

    def workspace_folders(self) -> List[Path]:
        return [self.workspace_root] if self.workspace_root else []

    def workspace_folder_for(self, document: MemoryDocument) -> Optional[Path]:
        if self.workspace_root is None:
            return None
        if document.file_name == "untitled":
            return None
        try:
            Path(document.file_name).resolve().relative_to(self.workspace_root)
        except ValueError:
            return None
        return self.workspace_root

    # -- edits --------------------------------------------------------------

    def apply_edits(self, document: MemoryDocument, edits: Sequence[ReplacementEdit]) -> bool:
        """Applies all edits against the current text as one change. Overlaps reject the batch."""
        ordered = sorted(edits, key=lambda e: e.start)
        for prev, nxt in zip(ordered, ordered[1:]):
            if prev.overlaps(nxt):
                logger.warning("Rejecting edit batch with overlapping ranges", document=document.uri)
                return False

        text = document.get_text()
        for edit in reversed(ordered):
            text = text[: edit.start] + edit.new_text + text[edit.end :]
        self._replace(document, text)
        return True

    def replace_text(self, document: MemoryDocument, text: str):
        """Replaces the whole buffer, the way typing or undo would."""
        self._replace(document, text)

    def _replace(self, document: MemoryDocument, text: str):
        document._set_text(text)
        document.version += 1
        self._did_change.fire(DocumentChangeEvent(document))

    def save(self, document: MemoryDocument):
        self._will_save.fire(DocumentWillSaveEvent(document))
        if document.file_name != "untitled":
            Path(document.file_name).write_text(document.get_text(), encoding="utf-8")

    # -- annotations --------------------------------------------------------

    def set_annotation(self, document: MemoryDocument, start: Position, end: Position, color: str) -> MemoryAnnotation:
        annotation = MemoryAnnotation(self, document, start, end, color)
        self.annotations.append(annotation)
        return annotation

    def annotated_text(self) -> List[str]:
        return [a.text for a in self.annotations]

    # -- notifications ------------------------------------------------------

    def on_did_change_text_document(self, listener: Callable[[DocumentChangeEvent], Any]) -> Disposable:
        return self._did_change.subscribe(listener)

    def on_will_save_text_document(self, listener: Callable[[DocumentWillSaveEvent], Any]) -> Disposable:
        return self._will_save.subscribe(listener)

    def on_did_change_configuration(self, listener: Callable[[ConfigurationChangeEvent], Any]) -> Disposable:
        return self._did_change_configuration.subscribe(listener)

    def change_configuration(self, section: str, values: Dict[str, Any]):
        self._did_change_configuration.fire(
            ConfigurationChangeEvent(section=section, changed=frozenset(values), values=dict(values))
        )

    @property
    def change_listener_count(self) -> int:
        return self._did_change.listener_count

    def show_information_message(self, message: str) -> None:
        logger.info(message)
        self.info_messages.append(message)

    def show_error_message(self, message: str) -> None:
        logger.error(message)
        self.error_messages.append(message)
