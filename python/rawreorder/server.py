import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import structlog
from mcp.server.fastmcp import FastMCP

from rawreorder.catalog import guess_language
from rawreorder.commands import ReorderExtension
from rawreorder.diff import find_moved_classes as _find_moved_classes
from rawreorder.diff import summarise_changes
from rawreorder.editor.memory import MemoryHost
from rawreorder.editor.scheduling import ManualScheduler
from rawreorder.settings import load_settings
from rawreorder.sorting import get_ranking_context, sort_classes

# --- LOGGING CONFIGURATION ---
# MCP communicates over stdio, so every log line goes to stderr.
logging.basicConfig(stream=sys.stderr, level=logging.INFO, force=True)

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
)

mcp = FastMCP("Tailwind Raw Reorder Service")


@mcp.tool()
def sort_class_string(classes: str, file_path: str, tailwind_config_path: Optional[str] = None) -> str:
    """
    Sorts one whitespace-separated Tailwind class string.

    Args:
        classes: The class list, e.g. "p-4 flex text-red-500".
        file_path: Path of the file the classes belong to. Used to locate the Tailwind config.
        tailwind_config_path: Optional explicit Tailwind config.
    """
    try:
        context = get_ranking_context(file_path, tailwind_config_path)
        if context is None:
            return "Error: Tailwind config not found."
        return sort_classes(classes, context=context)
    except Exception as e:
        return f"Error sorting classes: {str(e)}"


@mcp.tool()
def find_moved_classes(original: str, replacement: str) -> List[Dict]:
    """
    Lists the classes of `replacement` that moved relative to `original`, with their
    character offset inside `replacement`.
    """
    return [move.model_dump() for move in _find_moved_classes(original, replacement)]


@mcp.tool()
def sort_file(
    file_path: str,
    language_id: Optional[str] = None,
    settings_path: Optional[str] = None,
    write: bool = False,
) -> str:
    """
    Sorts every class list in a file and reports the word-level changes.

    Args:
        file_path: Absolute path to the file.
        language_id: Editor language id (html, vue, typescriptreact, ...). Guessed from the suffix if omitted.
        settings_path: Optional settings.json with tailwind-raw-reorder.* keys.
        write: If True, rewrites the file in place.
    """
    try:
        path = Path(file_path)
        if not path.exists():
            return f"Error: File not found: {file_path}"

        settings = load_settings(settings_path)
        text = path.read_text(encoding="utf-8")
        host = MemoryHost(workspace_root=path.parent)
        document = host.open_document(text, language_id=language_id or guess_language(path), file_name=str(path))
        outcome = ReorderExtension(host, settings, scheduler=ManualScheduler()).sort_document(document)

        if outcome.aborted:
            errors = "; ".join(host.error_messages) or outcome.aborted
            return f"Error: {errors}"
        if not outcome.changed:
            return "All class lists are already sorted."

        output = []
        for edit in outcome.edits:
            before = text[edit.start : edit.end]
            output.append(f"@@ line {document.position_at(edit.start).line + 1} @@")
            for op, chunk in summarise_changes(before, edit.new_text):
                if op == -1:
                    output.append(f"- {chunk}")
                elif op == 1:
                    output.append(f"+ {chunk}")

        if write:
            path.write_text(document.get_text(), encoding="utf-8")
            output.append(f"Saved to: {file_path}")

        output.append(f"Reordered {len(outcome.edits)} class lists; {len(outcome.placements)} classes moved.")
        return "\n".join(output)

    except Exception as e:
        return f"Error sorting file: {str(e)}"


def main():
    mcp.run()


if __name__ == "__main__":
    main()
