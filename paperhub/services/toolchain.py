"""External tool invocation for the render pipeline."""

import asyncio
import logging
from dataclasses import dataclass

from paperhub.core.errors import ToolchainError

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """Captured output of a finished tool run."""
    returncode: int
    stdout: str
    stderr: str

    @property
    def diagnostics(self) -> str:
        """Diagnostic stream of the run: stderr, or stdout when stderr is empty."""
        return (self.stderr or self.stdout).strip()


async def run_tool(cmd: list[str]) -> ToolResult:
    """Run an external command and wait for it to finish.

    No timeout is applied: a tool may run unbounded.

    Args:
        cmd: Command and arguments.

    Returns:
        ToolResult of a successful run.

    Raises:
        ToolchainError: If the tool cannot be started or exits nonzero.
    """
    tool = cmd[0]
    logger.debug(f"Running tool command: {' '.join(cmd)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        logger.error(f"{tool} could not be started: {e}")
        raise ToolchainError(tool, None, str(e)) from e

    stdout, stderr = await process.communicate()
    result = ToolResult(
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )

    if result.returncode != 0:
        logger.warning(f"{tool} returned non-zero exit code: {result.returncode}")
        logger.debug(f"{tool} stderr: {result.stderr}")
        raise ToolchainError(tool, result.returncode, result.diagnostics)

    return result
