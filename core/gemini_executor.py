"""
Gemini CLI executor.

Runs the ``gemini`` command-line tool as a child process and classifies
its outcome:

- executable missing at spawn time -> GeminiNotFound
- nonzero exit code -> GeminiExecutionError (detail is stderr)
- otherwise -> stdout text

Each call makes a single attempt with no timeout.
"""

import asyncio
from dataclasses import dataclass
from typing import List

from core.exceptions import GeminiExecutionError, GeminiNotFound
from core.logger import get_logger

DEFAULT_EXECUTABLE = "gemini"
PROMPT_PREFIX = "WebSearch: "


@dataclass
class ProcessOutput:
    """Captured result of a finished child process."""

    exit_code: int
    stdout: str
    stderr: str


class GeminiExecutor:
    """
    Executes web searches through the gemini CLI.

    Attributes:
        executable: Name or path of the gemini executable
        invocation_count: Number of child processes spawned so far
    """

    def __init__(self, executable: str = DEFAULT_EXECUTABLE) -> None:
        self.executable = executable
        self.invocation_count = 0
        self.logger = get_logger("gemini_search.gemini_executor")

    @staticmethod
    def build_args(query: str) -> List[str]:
        """Build the fixed argument vector for a query."""
        return ["-p", f"{PROMPT_PREFIX}{query}"]

    async def invoke(self, query: str) -> str:
        """
        Run a web search for query.

        Args:
            query: Search query string

        Returns:
            Standard output of the gemini CLI

        Raises:
            GeminiNotFound: If the executable cannot be found
            GeminiExecutionError: If the CLI exits with a nonzero code
        """
        args = self.build_args(query)
        self.invocation_count += 1
        self.logger.debug(f"Spawning {self.executable} with args {args}")

        try:
            output = await self._run(args)
        except FileNotFoundError as e:
            self.logger.error(f"Executable not found: {self.executable} ({e})")
            raise GeminiNotFound() from e

        if output.exit_code != 0:
            self.logger.warning(
                f"gemini exited with code {output.exit_code}: {output.stderr.strip()}"
            )
            raise GeminiExecutionError(output.stderr, exit_code=output.exit_code)

        self.logger.debug(f"gemini returned {len(output.stdout)} characters")
        return output.stdout

    async def _run(self, args: List[str]) -> ProcessOutput:
        """
        Spawn the executable and wait for it to finish.

        Raises:
            FileNotFoundError: If the executable does not exist
        """
        process = await asyncio.create_subprocess_exec(
            self.executable,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        stdout, stderr = await process.communicate()

        return ProcessOutput(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
