"""
Thin wrapper around subprocess for external commands.
"""
import logging
import shlex
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from ..core.errors import CommandError

logger = logging.getLogger(__name__)


def split_command(command: Union[str, Sequence[str]]) -> List[str]:
    """Accept either a shell-style string or an argument list"""
    if isinstance(command, str):
        return shlex.split(command)
    return list(command)


def run_command(
    command: Union[str, Sequence[str]],
    cwd: Optional[Union[str, Path]] = None,
    input_text: Optional[str] = None,
    timeout: Optional[int] = None,
    env: Optional[Dict[str, str]] = None,
    check: bool = True
) -> subprocess.CompletedProcess:
    """
    Run a command and capture its output.

    Args:
        command: Command string or argument list
        cwd: Working directory
        input_text: Text fed to stdin
        timeout: Seconds before the command is killed
        env: Environment for the child process
        check: Raise CommandError on a non-zero exit code

    Returns:
        CompletedProcess with text stdout/stderr
    """
    args = split_command(command)
    logger.debug(f"Running: {' '.join(args)} (cwd={cwd})")

    try:
        result = subprocess.run(
            args,
            cwd=str(cwd) if cwd else None,
            input=input_text,
            capture_output=True,
            text=True,
            encoding='utf-8',
            errors='surrogateescape',
            timeout=timeout,
            env=env,
        )
    except FileNotFoundError:
        raise CommandError(args, 127, stderr=f"{args[0]}: command not found")
    except subprocess.TimeoutExpired as e:
        raise CommandError(args, -1, stderr=f"timed out after {e.timeout}s")

    if check and result.returncode != 0:
        raise CommandError(args, result.returncode, result.stdout, result.stderr)

    return result
