"""
Highlight lifecycle for moved classes.

After a sort, every moved class gets one annotation. The annotations of a sort
form one activation cycle, which ends on whichever comes first:

    revert   the document text changes back to exactly what it was before the sort
    timeout  the cycle's timeout elapses
    config   the highlight colour setting changes

Only one cycle is active at a time; starting a new one retires the previous one.
Retiring disposes the cycle's annotations, its change listener and its timer
together, and is idempotent.
"""

import math
from dataclasses import dataclass, field
from itertools import count
from typing import Any, List, Optional, Sequence, Tuple

import structlog

from rawreorder.editor.events import ConfigurationChangeEvent, Disposable, DocumentChangeEvent
from rawreorder.editor.protocol import Annotation, EditorHost, Scheduler, TextDocument
from rawreorder.models import DEFAULT_HIGHLIGHT_COLOR, HighlightConfig, TokenMove

logger = structlog.get_logger(__name__)

HIGHLIGHT_COLOR_KEY = "highlightColor"
HIGHLIGHT_TIMEOUT_KEY = "highlightTimeout"

# (offset of the sorted class string in the edited document, move inside it)
Placement = Tuple[int, TokenMove]


class CycleScope:
    """Cancellable subscriptions owned by one cycle; closing it disposes all of them."""

    def __init__(self):
        self._disposables: List[Disposable] = []
        self.closed = False

    def add(self, disposable: Disposable) -> Disposable:
        if self.closed:
            disposable.dispose()
        else:
            self._disposables.append(disposable)
        return disposable

    def close(self):
        if self.closed:
            return
        self.closed = True
        while self._disposables:
            disposable = self._disposables.pop()
            try:
                disposable.dispose()
            except Exception as e:
                logger.error(f"Failed to dispose highlight subscription: {e}", exc_info=True)


@dataclass
class HighlightCycle:
    id: int
    document: TextDocument
    snapshot_text: str
    config: HighlightConfig
    annotations: List[Annotation] = field(default_factory=list)
    scope: CycleScope = field(default_factory=CycleScope)
    retired_reason: Optional[str] = None

    @property
    def retired(self) -> bool:
        return self.retired_reason is not None


class AnnotationLifecycle:
    def __init__(self, host: EditorHost, scheduler: Scheduler, config: Optional[HighlightConfig] = None):
        self.host = host
        self.scheduler = scheduler
        self.config = config or HighlightConfig()
        self.active_annotations: List[Annotation] = []
        self._current: Optional[HighlightCycle] = None
        self._cycle_ids = count(1)

    @property
    def current_cycle(self) -> Optional[HighlightCycle]:
        return self._current

    def activate(
        self,
        document: TextDocument,
        placements: Sequence[Placement],
        snapshot_text: str,
    ) -> Optional[HighlightCycle]:
        """
        Highlights moved classes and arms the retirement triggers.

        `snapshot_text` is the full document text from before the sort; seeing it
        again means the sort was undone. Moves that could not be located are
        skipped. Returns None when nothing is left to highlight, or when the
        cycle could not be armed; nothing it created is left behind.
        """
        placements = [(base, move) for base, move in placements if move.locatable]
        if not placements:
            return None

        if self._current is not None:
            self._retire(self._current, "superseded")

        cycle = HighlightCycle(
            id=next(self._cycle_ids),
            document=document,
            snapshot_text=snapshot_text,
            config=self.config,
        )
        self._current = cycle

        try:
            for base, move in placements:
                start = base + move.char_start
                end = start + len(move.token)
                annotation = self.host.set_annotation(
                    document,
                    document.position_at(start),
                    document.position_at(end),
                    cycle.config.color,
                )
                cycle.annotations.append(annotation)
                self.active_annotations.append(annotation)

            cycle.scope.add(
                self.host.on_did_change_text_document(lambda event: self._on_document_change(cycle, event))
            )
            timer = self.scheduler.call_later(cycle.config.timeout_seconds, lambda: self._retire(cycle, "timeout"))
            cycle.scope.add(Disposable(timer.cancel))
        except Exception as e:
            # A half-armed cycle could outlive its timeout; drop everything it created.
            logger.error(f"Could not start highlight cycle: {e}", cycle=cycle.id, exc_info=True)
            self._retire(cycle, "activation-failed")
            return None

        logger.debug(
            "Highlight cycle started",
            cycle=cycle.id,
            annotations=len(cycle.annotations),
            timeout_ms=cycle.config.timeout_ms,
        )
        return cycle

    def _on_document_change(self, cycle: HighlightCycle, event: DocumentChangeEvent):
        if cycle.retired or event.document.uri != cycle.document.uri:
            return
        if event.document.get_text() == cycle.snapshot_text:
            self._retire(cycle, "revert")

    def _retire(self, cycle: HighlightCycle, reason: str):
        if cycle.retired:
            return
        cycle.retired_reason = reason
        cycle.scope.close()

        for annotation in cycle.annotations:
            self._dispose_annotation(annotation)
        cycle.annotations = []

        if self._current is cycle:
            self._current = None
            # The current cycle owns every live annotation; drain whatever is left.
            for annotation in self.active_annotations:
                self._dispose_annotation(annotation)
            self.active_annotations = []

        logger.debug("Highlight cycle retired", cycle=cycle.id, reason=reason)

    @staticmethod
    def _dispose_annotation(annotation: Annotation):
        try:
            annotation.dispose()
        except Exception as e:
            logger.error(f"Failed to dispose annotation: {e}", exc_info=True)

    def clear(self, reason: str = "cleared"):
        """Retires the active cycle, if any."""
        if self._current is not None:
            self._retire(self._current, reason)
        elif self.active_annotations:
            for annotation in self.active_annotations:
                self._dispose_annotation(annotation)
            self.active_annotations = []

    def on_configuration_change(self, event: ConfigurationChangeEvent):
        """
        A colour change retires the live highlights at once; a timeout change only
        applies to cycles started afterwards.
        """
        if event.affects_configuration(HIGHLIGHT_COLOR_KEY):
            color = event.values.get(HIGHLIGHT_COLOR_KEY) or DEFAULT_HIGHLIGHT_COLOR
            self.config = self.config.model_copy(update={"color": color})
            self.clear("config-change")

        if event.affects_configuration(HIGHLIGHT_TIMEOUT_KEY):
            seconds: Any = event.values.get(HIGHLIGHT_TIMEOUT_KEY, 7)
            try:
                value = float(seconds)
            except (TypeError, ValueError):
                value = 0.0
            if not (math.isfinite(value) and value > 0):
                logger.warning(f"Ignoring invalid highlight timeout: {seconds!r}")
            else:
                timeout_ms = max(1, round(value * 1000))
                self.config = self.config.model_copy(update={"timeout_ms": timeout_ms})
