import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from rawreorder import __version__
from rawreorder.catalog import guess_language
from rawreorder.commands import ReorderExtension
from rawreorder.diff import find_moved_classes, summarise_changes
from rawreorder.editor.memory import MemoryHost
from rawreorder.editor.scheduling import ManualScheduler
from rawreorder.errors import SettingsError
from rawreorder.settings import ReorderSettings, load_settings


def _configure_logging(verbose: bool):
    # stdout carries the sorted text and JSON output.
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _load_settings(path: Optional[Path]) -> ReorderSettings:
    try:
        return load_settings(path)
    except SettingsError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)


def handle_sort(args):
    path: Path = args.file
    if not path.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)

    settings = _load_settings(args.settings)
    if args.config:
        settings = settings.with_changes({"tailwindConfigPath": str(args.config.resolve())})

    with open(path, "r", encoding="utf-8") as f:
        text = f.read()

    host = MemoryHost(workspace_root=args.root or Path.cwd())
    document = host.open_document(text, language_id=args.language or guess_language(path), file_name=str(path))
    extension = ReorderExtension(host, settings, scheduler=ManualScheduler())
    outcome = extension.sort_document(document)

    for message in host.error_messages:
        print(f"❌ {message}", file=sys.stderr)
    if outcome.aborted == "no-workspace":
        print(f"Error: {path} is outside the workspace root. Use --root.", file=sys.stderr)
    if outcome.aborted:
        sys.exit(1)

    if args.json:
        output = [
            {"token": move.token, "char_start": move.char_start, "offset": base + move.char_start}
            for base, move in outcome.placements
        ]
        print(json.dumps(output, indent=2))
    elif args.diff:
        print(f"Found {len(outcome.edits)} class lists to reorder:", file=sys.stderr)
        for edit in outcome.edits:
            before = text[edit.start : edit.end]
            line = document.position_at(edit.start).line + 1
            print(f"@@ line {line} @@")
            for op, chunk in summarise_changes(before, edit.new_text):
                if op == -1:
                    print(f"[-] {chunk}")
                elif op == 1:
                    print(f"[+] {chunk}")
    elif not args.write:
        sys.stdout.write(document.get_text())

    if args.write and outcome.changed:
        with open(path, "w", encoding="utf-8") as f:
            f.write(document.get_text())
        print(f"✅ Saved to {path}", file=sys.stderr)

    print(f"Stats: {len(outcome.edits)} class lists reordered, {len(outcome.placements)} classes moved.", file=sys.stderr)


def handle_moved(args):
    moves = find_moved_classes(args.original, args.replacement)
    if args.json:
        print(json.dumps([m.model_dump() for m in moves], indent=2))
        return
    if not moves:
        print("No classes moved.", file=sys.stderr)
    for move in moves:
        print(f"{move.char_start}\t{move.token}")


def handle_project(args):
    settings = _load_settings(args.settings)
    root: Path = args.root.resolve()
    if not root.is_dir():
        print(f"Error: Not a directory: {root}", file=sys.stderr)
        sys.exit(1)

    host = MemoryHost(workspace_root=root)
    extension = ReorderExtension(host, settings)
    code = asyncio.run(extension.sort_workspace())

    for message in host.info_messages:
        print(message, file=sys.stderr)
    for message in host.error_messages:
        print(f"❌ {message}", file=sys.stderr)
    if code:
        sys.exit(1)


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(prog="rawreorder", description="Reorder Tailwind CSS classes")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", action="store_true", help="Log progress to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Subcommands")

    p_sort = subparsers.add_parser("sort", help="Sort the class lists in one file")
    p_sort.add_argument("file", type=Path, help="File to sort")
    p_sort.add_argument("--language", help="Language id (default: guessed from the file suffix)")
    p_sort.add_argument("--settings", type=Path, help="settings.json holding tailwind-raw-reorder.* keys")
    p_sort.add_argument("--config", type=Path, help="Tailwind config to use instead of searching")
    p_sort.add_argument("--root", type=Path, help="Workspace root (default: current directory)")
    output = p_sort.add_mutually_exclusive_group()
    output.add_argument("--diff", action="store_true", help="Print word-level changes instead of the sorted text")
    output.add_argument("--json", action="store_true", help="Print the moved classes as JSON")
    p_sort.add_argument("-w", "--write", action="store_true", help="Rewrite the file in place")
    p_sort.set_defaults(func=handle_sort)

    p_moved = subparsers.add_parser("moved", help="Show which classes moved between two class strings")
    p_moved.add_argument("original", help="Class string before sorting")
    p_moved.add_argument("replacement", help="Class string after sorting")
    p_moved.add_argument("--json", action="store_true", help="Output raw JSON")
    p_moved.set_defaults(func=handle_moved)

    p_project = subparsers.add_parser("project", help="Run the batch reorder tool over a whole project")
    p_project.add_argument("root", type=Path, help="Project root")
    p_project.add_argument("--settings", type=Path, help="settings.json holding tailwind-raw-reorder.* keys")
    p_project.set_defaults(func=handle_project)

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
