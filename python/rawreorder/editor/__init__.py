from rawreorder.editor.events import (
    ConfigurationChangeEvent,
    Disposable,
    DocumentChangeEvent,
    DocumentWillSaveEvent,
    EventEmitter,
)
from rawreorder.editor.memory import MemoryDocument, MemoryHost
from rawreorder.editor.protocol import EditorHost, Position, Scheduler, TextDocument
from rawreorder.editor.scheduling import AsyncioScheduler, ManualScheduler

__all__ = [
    "AsyncioScheduler",
    "ConfigurationChangeEvent",
    "Disposable",
    "DocumentChangeEvent",
    "DocumentWillSaveEvent",
    "EditorHost",
    "EventEmitter",
    "ManualScheduler",
    "MemoryDocument",
    "MemoryHost",
    "Position",
    "Scheduler",
    "TextDocument",
]
