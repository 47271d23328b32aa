"""
Command orchestrators: wire the catalog, extractor, canonicaliser, move diff and
highlight lifecycle to an editor host.

    sort_document   sort every class list found in a document
    sort_selection  sort the selected text as one class list
    sort_workspace  run the external batch tool over the workspace root
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Pattern

import structlog
from pydantic import ValidationError

from rawreorder.batch import run_batch_tool
from rawreorder.catalog import resolve_rules
from rawreorder.diff import find_moved_classes
from rawreorder.editor.events import ConfigurationChangeEvent, Disposable, DocumentWillSaveEvent
from rawreorder.editor.protocol import EditorHost, Scheduler, TextDocument
from rawreorder.editor.scheduling import AsyncioScheduler
from rawreorder.errors import ConfigNotFoundError, InvalidRuleError
from rawreorder.extract import iter_matches
from rawreorder.highlight import AnnotationLifecycle, HighlightCycle, Placement
from rawreorder.models import ReplacementEdit, TokenMove
from rawreorder.settings import SECTION, ReorderSettings
from rawreorder.sorting import Canonicalizer, RankingContext, require_ranking_context, sort_classes

logger = structlog.get_logger(__name__)

SORT_DOCUMENT_COMMAND = f"{SECTION}.sortTailwindClasses"
SORT_SELECTION_COMMAND = f"{SECTION}.sortTailwindClassesOnSelection"
SORT_WORKSPACE_COMMAND = f"{SECTION}.sortTailwindClassesOnWorkspace"

CONFIG_NOT_FOUND_MESSAGE = "Tailwind Raw Reorder: Tailwind config not found"

ContextProvider = Callable[[str, Optional[Path]], RankingContext]


@dataclass
class SortOutcome:
    edits: List[ReplacementEdit] = field(default_factory=list)
    placements: List[Placement] = field(default_factory=list)
    cycle: Optional[HighlightCycle] = None
    aborted: Optional[str] = None

    @property
    def changed(self) -> bool:
        return bool(self.edits)

    @property
    def moves(self) -> List[TokenMove]:
        return [move for _, move in self.placements]


def selection_pattern(separator: Optional[str]) -> Pattern[str]:
    """Loose test for "this text looks like a list of utility classes"."""
    sep = separator or r"\s"
    source = rf"""(?:[a-zA-Z][a-zA-Z/_\-:]+(?:\[[a-zA-Z/_\-"'\\:\.]\])?(?:{sep})*)+"""
    try:
        return re.compile(source)
    except re.error as e:
        raise InvalidRuleError(source, str(e)) from e


class ReorderExtension:
    def __init__(
        self,
        host: EditorHost,
        settings: Optional[ReorderSettings] = None,
        scheduler: Optional[Scheduler] = None,
        canonicalizer: Canonicalizer = sort_classes,
        context_provider: ContextProvider = require_ranking_context,
    ):
        self.host = host
        self.settings = settings or ReorderSettings()
        self.scheduler = scheduler or AsyncioScheduler()
        self.canonicalizer = canonicalizer
        self.context_provider = context_provider
        self.highlights = AnnotationLifecycle(host, self.scheduler, self.settings.highlight_config())
        self.subscriptions: List[Disposable] = []

    @property
    def workspace_root(self) -> Optional[Path]:
        folders = self.host.workspace_folders()
        return folders[0] if folders else None

    # -- activation ---------------------------------------------------------

    def activate(self) -> List[Disposable]:
        if self.workspace_root is None:
            logger.info("No workspace found")
            return []

        self.subscriptions.append(self.host.on_did_change_configuration(self._on_configuration_change))
        if self.settings.run_on_save:
            self.subscriptions.append(self.host.on_will_save_text_document(self._on_will_save))
        return list(self.subscriptions)

    def deactivate(self):
        for subscription in self.subscriptions:
            subscription.dispose()
        self.subscriptions = []
        self.highlights.clear("deactivated")

    def commands(self) -> Dict[str, Callable[[], Any]]:
        return {
            SORT_DOCUMENT_COMMAND: self.sort_document,
            SORT_SELECTION_COMMAND: self.sort_selection,
            SORT_WORKSPACE_COMMAND: self.sort_workspace,
        }

    def _on_configuration_change(self, event: ConfigurationChangeEvent):
        if event.section != SECTION:
            return
        try:
            self.settings = self.settings.with_changes(event.values)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid settings change: {e}")
        self.highlights.on_configuration_change(event)

    def _on_will_save(self, event: DocumentWillSaveEvent):
        self.sort_document(event.document)

    # -- helpers ------------------------------------------------------------

    def _ranking_context(self, document: TextDocument) -> Optional[RankingContext]:
        override = self.settings.resolved_config_path(self.workspace_root)
        try:
            return self.context_provider(document.file_name, override)
        except ConfigNotFoundError as e:
            logger.info(str(e))
            if not self.settings.ignore_config_not_found:
                self.host.show_error_message(CONFIG_NOT_FOUND_MESSAGE)
            return None

    def _canonicalize(self, text: str, separator: Optional[str], replacement: Optional[str], context) -> str:
        return self.canonicalizer(text, separator=separator, replacement=replacement, context=context)

    # -- commands -----------------------------------------------------------

    def sort_document(self, document: Optional[TextDocument] = None) -> SortOutcome:
        document = document or self.host.active_document()
        if document is None:
            logger.info("No active document to sort")
            return SortOutcome(aborted="no-document")

        if self.host.workspace_folder_for(document) is None:
            logger.info(f"No workspace found for file: {document.file_name}")
            return SortOutcome(aborted="no-workspace")

        rules = resolve_rules(document.language_id, self.settings.class_regex)
        context = self._ranking_context(document)
        if context is None:
            return SortOutcome(aborted="config-not-found")

        text = document.get_text()
        edits: List[ReplacementEdit] = []
        moves: Dict[int, List[TokenMove]] = {}

        for rule in rules:
            try:
                matches = list(iter_matches(rule, text))
            except InvalidRuleError as e:
                logger.warning(str(e))
                continue

            for match in matches:
                sorted_value = self._canonicalize(match.value, rule.separator, rule.replacement, context)
                if sorted_value == match.value:
                    continue

                edit = ReplacementEdit(start=match.value_start, end=match.value_end, new_text=sorted_value)
                if any(edit.overlaps(existing) for existing in edits):
                    logger.warning(f"Skipping class list at {edit.start}: overlaps an earlier match")
                    continue

                edits.append(edit)
                moves[edit.start] = find_moved_classes(match.value, sorted_value)

        if not edits:
            return SortOutcome()

        if not self.host.apply_edits(document, edits):
            logger.warning("Editor rejected class reorder edits", document=document.uri)
            return SortOutcome(aborted="edit-rejected")

        # Offsets in the edited document move by the length change of earlier edits.
        placements: List[Placement] = []
        shift = 0
        for edit in sorted(edits, key=lambda e: e.start):
            base = edit.start + shift
            placements.extend((base, move) for move in moves[edit.start])
            shift += edit.delta

        cycle = self.highlights.activate(document, placements, snapshot_text=text)
        logger.info(f"Sorted {len(edits)} class lists in {document.file_name}", moved=len(placements))
        return SortOutcome(edits=edits, placements=placements, cycle=cycle)

    def sort_selection(self) -> SortOutcome:
        document = self.host.active_document()
        selection = self.host.active_selection()
        if document is None or selection is None or selection[0] == selection[1]:
            return SortOutcome(aborted="no-selection")

        rules = resolve_rules(document.language_id, self.settings.class_regex)
        context = self._ranking_context(document)
        if context is None:
            return SortOutcome(aborted="config-not-found")

        full_text = document.get_text()
        selected = document.get_text(selection)

        for rule in rules:
            try:
                pattern = selection_pattern(rule.separator)
            except InvalidRuleError as e:
                logger.warning(str(e))
                continue
            if not pattern.search(selected):
                continue

            sorted_text = self._canonicalize(selected, rule.separator, rule.replacement, context)
            if sorted_text == selected:
                return SortOutcome()

            edit = ReplacementEdit(start=selection[0], end=selection[1], new_text=sorted_text)
            if not self.host.apply_edits(document, [edit]):
                return SortOutcome(aborted="edit-rejected")

            placements = [(edit.start, move) for move in find_moved_classes(selected, sorted_text)]
            cycle = self.highlights.activate(document, placements, snapshot_text=full_text)
            return SortOutcome(edits=[edit], placements=placements, cycle=cycle)

        return SortOutcome()

    async def sort_workspace(self) -> Optional[int]:
        root = self.workspace_root
        if root is None:
            logger.info("No workspace found")
            return None

        self.host.show_information_message(f"Running Tailwind Raw Reorder on: {root}")
        tool = Path(self.settings.batch_command[0]).name

        def on_stdout(text: str):
            logger.info(f"{tool} stdout:\n{text}")

        def on_stderr(text: str):
            logger.warning(f"{tool} stderr:\n{text}")
            self.host.show_error_message(f"Tailwind Raw Reorder error: {text}")

        return await run_batch_tool(self.settings.batch_command, root, on_stdout, on_stderr)
