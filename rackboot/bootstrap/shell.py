"""Shell command execution helper."""

import asyncio
import logging

logger = logging.getLogger(__name__)


async def run_shell_cmd(command, dry_run=False, timeout=None, display=None, log_output=False):
    """Run a command and return (returncode, stdout, stderr).

    Args:
        command: list of command arguments
        dry_run: if True, log the command instead of executing
        timeout: maximum seconds to wait for the command (None waits forever)
        display: argument list to log in place of *command* (e.g. with secrets masked)
        log_output: if True, log stdout/stderr lines as they arrive

    Returns:
        (returncode, stdout, stderr) tuple
    """
    shown = " ".join(display or command)
    if dry_run:
        logger.info(f"[dry-run] {shown}")
        return 0, "", ""

    logger.debug(f"Running: {shown}")
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        logger.error(f"Error: '{command[0]}' not found. Is it installed and on PATH?")
        return 127, "", f"'{command[0]}' not found"

    try:
        if log_output:
            stdout_lines, stderr_lines = [], []

            async def _read_stream(pipe, lines, level):
                async for raw_line in pipe:
                    line = raw_line.decode(errors="replace").rstrip("\n")
                    logger.log(level, line)
                    lines.append(line)

            await asyncio.wait_for(
                asyncio.gather(
                    _read_stream(proc.stdout, stdout_lines, logging.INFO),
                    _read_stream(proc.stderr, stderr_lines, logging.ERROR),
                    proc.wait(),
                ),
                timeout=timeout,
            )
            return proc.returncode, "\n".join(stdout_lines), "\n".join(stderr_lines)

        stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        stdout = stdout_bytes.decode(errors="replace") if stdout_bytes else ""
        stderr = stderr_bytes.decode(errors="replace") if stderr_bytes else ""
        return proc.returncode, stdout, stderr
    except TimeoutError:
        logger.error(f"Command timed out after {timeout}s: {shown}")
        proc.kill()
        await proc.wait()
        return 1, "", "timeout"
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise
