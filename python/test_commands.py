"""
Tests for commands.py, settings.py and batch.py — the reorder commands end to end
over an in-memory editor.

Run: python3 -m pytest python/test_commands.py
"""

import asyncio
import json
import sys
import tempfile
from pathlib import Path

from rawreorder.commands import CONFIG_NOT_FOUND_MESSAGE, ReorderExtension, selection_pattern
from rawreorder.editor.memory import MemoryHost
from rawreorder.editor.scheduling import ManualScheduler
from rawreorder.errors import SettingsError
from rawreorder.settings import SECTION, ReorderSettings, load_settings


# ---------------------------------------------------------------------------
# Helpers — a temporary workspace with a Tailwind config
# ---------------------------------------------------------------------------

class Workspace:
    def __init__(self, with_config=True, **settings):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()
        if with_config:
            (self.root / "tailwind.config.js").write_text("module.exports = {}\n")
        self.host = MemoryHost(workspace_root=self.root)
        self.scheduler = ManualScheduler()
        self.extension = ReorderExtension(self.host, ReorderSettings(**settings), scheduler=self.scheduler)

    def open(self, text, name="index.html", language_id="html"):
        path = self.root / name
        path.write_text(text)
        return self.host.open_document(text, language_id=language_id, file_name=str(path))

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.extension.deactivate()
        self._tmp.cleanup()


# ---------------------------------------------------------------------------
# Sort document
# ---------------------------------------------------------------------------

def test_sort_document_reorders_and_highlights():
    with Workspace() as ws:
        doc = ws.open('<div class="p-4 flex"></div>')
        outcome = ws.extension.sort_document()

        assert doc.get_text() == '<div class="flex p-4"></div>'
        assert outcome.changed
        assert [m.token for m in outcome.moves] == ["flex"]
        assert ws.host.annotated_text() == ["flex"]
        assert outcome.cycle is not None
    print("PASS: sort_document reorders and highlights moved classes")


def test_undo_clears_highlights():
    with Workspace() as ws:
        original = '<div class="p-4 flex"></div>'
        doc = ws.open(original)
        ws.extension.sort_document(doc)
        ws.host.replace_text(doc, original)
        assert ws.host.annotations == []
        assert ws.extension.highlights.active_annotations == []
    print("PASS: undo clears highlights")


def test_highlight_times_out():
    with Workspace(highlightTimeout=2) as ws:
        ws.open('<div class="p-4 flex"></div>')
        ws.extension.sort_document()
        ws.scheduler.advance(1.9)
        assert ws.host.annotated_text() == ["flex"]
        ws.scheduler.advance(0.2)
        assert ws.host.annotations == []
    print("PASS: highlights time out after the configured seconds")


def test_offsets_shift_after_length_changing_edits():
    with Workspace() as ws:
        doc = ws.open('<a class="flex p-4 flex"></a><b class="p-4 flex"></b>')
        outcome = ws.extension.sort_document(doc)

        assert doc.get_text() == '<a class="flex p-4"></a><b class="flex p-4"></b>'
        assert len(outcome.edits) == 2
        assert ws.host.annotated_text() == ["flex"]
        annotation = ws.host.annotations[0]
        assert doc.offset_at(annotation.start) == doc.get_text().index('<b class="') + len('<b class="')
    print("PASS: highlight offsets follow earlier edits")


def test_multiple_rules_processed_in_order():
    catalog = {"html": [{"regex": r"""\bclass\s*=\s*"([^"]*)\""""}, {"regex": r"""\bdata-tw\s*=\s*"([^"]*)\""""}]}
    with Workspace(classRegex=catalog) as ws:
        doc = ws.open('<a class="p-4 flex" data-tw="block m-2"></a>')
        outcome = ws.extension.sort_document(doc)
        assert doc.get_text() == '<a class="flex p-4" data-tw="m-2 block"></a>'
        assert len(outcome.edits) == 2
    print("PASS: every rule is applied")


def test_overlapping_rules_are_skipped():
    catalog = {"html": [{"regex": r"""class="([^"]*)\""""}, {"regex": r"""class="([^"]*)\""""}]}
    with Workspace(classRegex=catalog) as ws:
        doc = ws.open('<a class="p-4 flex"></a>')
        outcome = ws.extension.sort_document(doc)
        assert len(outcome.edits) == 1
        assert doc.get_text() == '<a class="flex p-4"></a>'
    print("PASS: overlapping candidates from later rules are skipped")


def test_unknown_language_uses_html_rules():
    with Workspace() as ws:
        doc = ws.open('<div class="p-4 flex"></div>', name="page.tmpl", language_id="gotemplate")
        ws.extension.sort_document(doc)
        assert doc.get_text() == '<div class="flex p-4"></div>'
    print("PASS: unknown language uses html rules")


def test_custom_separator_rule():
    catalog = {"html": {"regex": r"""data-cls="([^"]*)\"""", "separator": ","}}
    with Workspace(classRegex=catalog) as ws:
        doc = ws.open('<i data-cls="p-4,flex"></i>')
        ws.extension.sort_document(doc)
        assert doc.get_text() == '<i data-cls="flex,p-4"></i>'
    print("PASS: separator rules join with their replacement")


def test_already_sorted_makes_no_edit():
    with Workspace() as ws:
        doc = ws.open('<div class="flex p-4"></div>')
        version = doc.version
        outcome = ws.extension.sort_document(doc)
        assert not outcome.changed
        assert outcome.cycle is None
        assert doc.version == version
    print("PASS: sorted documents are left alone")


def test_config_not_found_aborts_with_notice():
    with Workspace(with_config=False) as ws:
        doc = ws.open('<div class="p-4 flex"></div>')
        outcome = ws.extension.sort_document(doc)
        assert outcome.aborted == "config-not-found"
        assert doc.get_text() == '<div class="p-4 flex"></div>'
        assert ws.host.error_messages == [CONFIG_NOT_FOUND_MESSAGE]
    print("PASS: missing config aborts with an error notice")


def test_config_not_found_can_be_silenced():
    with Workspace(with_config=False, IgnoreConfigNotFound=True) as ws:
        doc = ws.open('<div class="p-4 flex"></div>')
        outcome = ws.extension.sort_document(doc)
        assert outcome.aborted == "config-not-found"
        assert ws.host.error_messages == []
    print("PASS: missing config can abort silently")


def test_config_path_override_is_relative_to_workspace():
    with Workspace(with_config=False, tailwindConfigPath="config/tw.config.js") as ws:
        (ws.root / "config").mkdir()
        (ws.root / "config" / "tw.config.js").write_text("")
        doc = ws.open('<div class="p-4 flex"></div>')
        ws.extension.sort_document(doc)
        assert doc.get_text() == '<div class="flex p-4"></div>'
    print("PASS: tailwindConfigPath is resolved against the workspace")


def test_default_scheduler_works_outside_event_loop():
    with Workspace() as ws:
        doc = ws.open('<div class="p-4 flex"></div>')
        extension = ReorderExtension(ws.host, ReorderSettings())
        outcome = extension.sort_document(doc)

        assert doc.get_text() == '<div class="flex p-4"></div>'
        assert outcome.cycle is not None
        assert ws.host.annotated_text() == ["flex"]

        extension.deactivate()
        assert ws.host.annotations == []
        assert ws.host.change_listener_count == 0
    print("PASS: sorting from plain synchronous code still arms the highlight timeout")


def test_sub_millisecond_timeout_setting():
    settings = ReorderSettings(highlightTimeout=0.0004)
    assert settings.highlight_config().timeout_ms == 1
    extension = ReorderExtension(MemoryHost(), settings, scheduler=ManualScheduler())
    assert extension.highlights.config.timeout_ms == 1
    print("PASS: tiny highlight timeouts round up instead of failing validation")


def test_file_outside_workspace_is_skipped_silently():
    with Workspace() as ws:
        doc = ws.host.open_document('<div class="p-4 flex"></div>', file_name="/elsewhere/index.html")
        outcome = ws.extension.sort_document(doc)
        assert outcome.aborted == "no-workspace"
        assert ws.host.error_messages == []
        assert doc.get_text() == '<div class="p-4 flex"></div>'
    print("PASS: files outside the workspace are skipped without a notice")


# ---------------------------------------------------------------------------
# Sort selection
# ---------------------------------------------------------------------------

def test_sort_selection_replaces_selected_classes():
    with Workspace() as ws:
        text = "const cls = 'p-4 flex';"
        doc = ws.open(text, name="a.js", language_id="javascript")
        start = text.index("p-4")
        ws.host.select(start, start + len("p-4 flex"))
        outcome = ws.extension.sort_selection()
        assert doc.get_text() == "const cls = 'flex p-4';"
        assert ws.host.annotated_text() == ["flex"]
        assert outcome.changed
    print("PASS: sort_selection sorts the selected text")


def test_sort_selection_ignores_non_class_text():
    with Workspace() as ws:
        doc = ws.open("123 456")
        ws.host.select(0, 7)
        outcome = ws.extension.sort_selection()
        assert not outcome.changed
        assert doc.get_text() == "123 456"
    print("PASS: selections that do not look like classes are left alone")


def test_sort_selection_needs_a_selection():
    with Workspace() as ws:
        ws.open('<div class="p-4 flex"></div>')
        assert ws.extension.sort_selection().aborted == "no-selection"
        ws.host.select(3, 3)
        assert ws.extension.sort_selection().aborted == "no-selection"
    print("PASS: sort_selection needs a non-empty selection")


def test_selection_pattern():
    assert selection_pattern(None).search("md:p-4 flex")
    assert selection_pattern(",").search("p-4,flex")
    assert not selection_pattern(None).search("12 34")
    print("PASS: selection pattern recognises class lists")


# ---------------------------------------------------------------------------
# Activation, run on save, configuration changes
# ---------------------------------------------------------------------------

def test_activate_without_workspace_registers_nothing():
    host = MemoryHost()
    extension = ReorderExtension(host, ReorderSettings(runOnSave=True), scheduler=ManualScheduler())
    assert extension.activate() == []
    print("PASS: no workspace, nothing registered")


def test_run_on_save_sorts_before_writing():
    with Workspace(runOnSave=True) as ws:
        doc = ws.open('<div class="p-4 flex"></div>')
        ws.extension.activate()
        ws.host.save(doc)
        assert Path(doc.file_name).read_text() == '<div class="flex p-4"></div>'
    print("PASS: runOnSave sorts the document before it is written")


def test_configuration_change_updates_settings_and_clears():
    with Workspace() as ws:
        ws.open('<div class="p-4 flex"></div>')
        ws.extension.activate()
        ws.extension.sort_document()
        assert ws.host.annotations

        ws.host.change_configuration(SECTION, {"highlightColor": "editorWarning.foreground"})
        assert ws.host.annotations == []
        assert ws.extension.settings.highlight_color == "editorWarning.foreground"

        ws.host.change_configuration("editor", {"fontSize": 14})
        assert ws.extension.settings.highlight_color == "editorWarning.foreground"
    print("PASS: configuration changes update settings and clear highlights")


def test_commands_are_registered_by_name():
    with Workspace() as ws:
        names = set(ws.extension.commands())
        assert names == {
            "tailwind-raw-reorder.sortTailwindClasses",
            "tailwind-raw-reorder.sortTailwindClassesOnSelection",
            "tailwind-raw-reorder.sortTailwindClassesOnWorkspace",
        }
    print("PASS: commands registered by name")


# ---------------------------------------------------------------------------
# Sort workspace (batch tool)
# ---------------------------------------------------------------------------

def test_sort_workspace_surfaces_stderr():
    script = "import sys; print('rewrote 3 files'); sys.stderr.write('boom'); sys.exit(2)"
    with Workspace(batchCommand=[sys.executable, "-c", script]) as ws:
        code = asyncio.run(ws.extension.sort_workspace())
        assert code == 2
        assert ws.host.info_messages == [f"Running Tailwind Raw Reorder on: {ws.root}"]
        assert ws.host.error_messages == ["Tailwind Raw Reorder error: boom"]
    print("PASS: batch tool stderr becomes an error notice")


def test_sort_workspace_passes_root_and_write_flag():
    script = "import sys; sys.exit(0 if sys.argv[1:] == [sys.argv[1], '--write'] and sys.argv[1] else 3)"
    with Workspace(batchCommand=[sys.executable, "-c", script]) as ws:
        assert asyncio.run(ws.extension.sort_workspace()) == 0
        assert ws.host.error_messages == []
    print("PASS: batch tool receives the root and --write")


def test_sort_workspace_missing_tool():
    with Workspace(batchCommand=["rawreorder-no-such-tool"]) as ws:
        code = asyncio.run(ws.extension.sort_workspace())
        assert code == 127
        assert len(ws.host.error_messages) == 1
        assert ws.host.error_messages[0].startswith("Tailwind Raw Reorder error: Could not start")
    print("PASS: a missing batch tool is reported, not raised")


def test_sort_workspace_without_workspace():
    host = MemoryHost()
    extension = ReorderExtension(host, scheduler=ManualScheduler())
    assert asyncio.run(extension.sort_workspace()) is None
    assert host.info_messages == [] and host.error_messages == []
    print("PASS: no workspace, batch tool not run")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def test_load_settings_flat_and_nested_keys():
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "settings.json"
        path.write_text(json.dumps({
            "editor.fontSize": 14,
            SECTION: {"highlightColor": "nested", "runOnSave": True},
            f"{SECTION}.highlightColor": "flat",
            f"{SECTION}.highlightTimeout": 2.5,
        }))
        settings = load_settings(path)
        assert settings.highlight_color == "flat"
        assert settings.run_on_save is True
        assert settings.highlight_config().timeout_ms == 2500
        assert "html" in settings.class_regex
    print("PASS: settings read from flat and nested keys")


def test_load_settings_defaults_and_errors():
    assert load_settings(None) == ReorderSettings()
    with tempfile.TemporaryDirectory() as tmp:
        assert load_settings(Path(tmp) / "missing.json") == ReorderSettings()

        bad = Path(tmp) / "bad.json"
        bad.write_text("{ nope")
        invalid = Path(tmp) / "invalid.json"
        invalid.write_text(json.dumps({f"{SECTION}.highlightTimeout": -1}))
        for path in (bad, invalid):
            try:
                load_settings(path)
            except SettingsError:
                pass
            else:
                assert False, f"expected SettingsError for {path.name}"
    print("PASS: missing settings give defaults, broken settings raise")


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

if __name__ == '__main__':
    tests = [v for k, v in list(globals().items()) if k.startswith("test_") and callable(v)]
    failed = 0
    for t in tests:
        try:
            t()
        except Exception as e:
            print(f"FAIL: {t.__name__} — {e}")
            failed += 1
    print(f"\nResults: {len(tests) - failed} passed, {failed} failed out of {len(tests)} tests")
    sys.exit(1 if failed else 0)
