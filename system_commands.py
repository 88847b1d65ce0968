"""
System Command Runner

Async wrapper around external programs (ping, ip, nmcli, wg, wg-quick)
shared by the system probe and the WireGuard provisioner.
"""

import asyncio
import contextlib
import shutil
from typing import Optional, Tuple

from loguru import logger


class CommandError(Exception):
    """An external command could not be run to completion."""


class CommandRunner:
    """Async command runner with timeouts and optional dry-run."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    async def run(
        self,
        *argv: str,
        timeout: Optional[float] = None,
        input_text: Optional[str] = None,
    ) -> Tuple[int, str, str]:
        """
        Run a command and capture its output.

        Args:
            argv: Program and arguments
            timeout: Seconds before the process is killed
            input_text: Text fed to stdin

        Returns:
            Tuple of (returncode, stdout, stderr)
        """
        if self.dry_run:
            logger.debug(f"dry-run: {' '.join(argv)}")
            return 0, "", ""

        if shutil.which(argv[0]) is None:
            raise CommandError(f"executable not found: {argv[0]}")

        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE if input_text is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        payload = input_text.encode() if input_text is not None else None

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(payload), timeout=timeout)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            raise CommandError(f"timeout running: {' '.join(argv)}")

        out = stdout.decode(errors="ignore") if stdout else ""
        err = stderr.decode(errors="ignore") if stderr else ""
        return proc.returncode, out, err

    def is_installed(self, program: str) -> bool:
        """Check whether a program is on PATH."""
        return shutil.which(program) is not None
