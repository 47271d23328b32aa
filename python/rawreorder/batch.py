import asyncio
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import structlog

logger = structlog.get_logger(__name__)

MISSING_EXECUTABLE_EXIT = 127


def build_batch_args(command: Sequence[str], workspace_root: Union[str, Path]) -> List[str]:
    return [arg for arg in [*command, str(workspace_root), "--write"] if arg != ""]


async def _pump(stream: Optional[asyncio.StreamReader], callback: Callable[[str], None]):
    if stream is None:
        return
    while True:
        chunk = await stream.read(4096)
        if not chunk:
            break
        text = chunk.decode("utf-8", errors="replace")
        if text:
            callback(text)


async def run_batch_tool(
    command: Sequence[str],
    workspace_root: Union[str, Path],
    on_stdout: Callable[[str], None],
    on_stderr: Callable[[str], None],
) -> int:
    """
    Runs the external reorder tool over a whole workspace, rewriting files in place.

    Output chunks are handed to the callbacks as they arrive. Failures to start the
    tool are reported through `on_stderr`; nothing is raised.
    """
    args = build_batch_args(command, workspace_root)
    logger.info("Starting batch reorder", args=args)

    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        on_stderr(f"Could not start {args[0]}: {e}")
        return MISSING_EXECUTABLE_EXIT

    await asyncio.gather(_pump(proc.stdout, on_stdout), _pump(proc.stderr, on_stderr))
    code = await proc.wait()
    logger.info("Batch reorder finished", exit_code=code)
    return code
