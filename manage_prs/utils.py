#!/usr/bin/env python3
"""
Shared helpers: logging setup, command execution and hand-off files.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple, Union

from manage_prs.config import COMMAND_TIMEOUT, PR_BODY_FILE, PR_TITLE_FILE
from manage_prs.errors import PreconditionError

logger = logging.getLogger(__name__)


# ============================================================================
# LOGGING SETUP
# ============================================================================

def setup_logging(verbose: bool = False) -> None:
    """Configure root logging once per process."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


# ============================================================================
# COMMAND EXECUTION
# ============================================================================

def run_command(
    cmd: List[str],
    cwd: Optional[str] = None,
    check: bool = True,
    capture_output: bool = True,
    dry_run: bool = False
) -> Tuple[int, str, str]:
    """
    Execute a command and return the result.

    Args:
        cmd: Command to run as a list of strings
        cwd: Working directory for the command
        check: If True, raise CalledProcessError on non-zero exit code
        capture_output: If True, capture stdout and stderr
        dry_run: If True, only log the command without executing

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    if dry_run:
        logger.info(f"[DRY RUN] Would execute: {' '.join(cmd)}")
        return 0, "", ""

    logger.debug(f"Executing: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            check=False,
            capture_output=capture_output,
            text=True,
            timeout=COMMAND_TIMEOUT
        )
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out: {' '.join(cmd)}")
        raise
    except OSError as e:
        logger.error(f"Error executing command: {e}")
        raise

    stdout = result.stdout if capture_output else ""
    stderr = result.stderr if capture_output else ""
    logger.debug(f"Result ({result.returncode}): {stdout.strip()}")

    if check and result.returncode != 0:
        raise subprocess.CalledProcessError(result.returncode, cmd, stdout, stderr)

    return result.returncode, stdout, stderr


# ============================================================================
# HAND-OFF FILES
# ============================================================================

def write_handoff(title: str, body: str, directory: Union[str, Path] = ".") -> Tuple[Path, Path]:
    """
    Write the PR title and body for the lifecycle step.

    Returns:
        Tuple of (title_path, body_path)
    """
    directory = Path(directory)
    title_path = directory / PR_TITLE_FILE
    body_path = directory / PR_BODY_FILE
    title_path.write_text(title, encoding='utf-8')
    body_path.write_text(body, encoding='utf-8')
    return title_path, body_path


def read_handoff(directory: Union[str, Path] = ".") -> Tuple[str, str]:
    """
    Read the PR title and body written by apply-template.

    Raises:
        PreconditionError: If either file is missing or the title is empty
    """
    directory = Path(directory)
    title_path = directory / PR_TITLE_FILE
    body_path = directory / PR_BODY_FILE
    for path in (title_path, body_path):
        if not path.exists():
            raise PreconditionError(f"{path.name} file not found")

    title = title_path.read_text(encoding='utf-8').strip()
    body = body_path.read_text(encoding='utf-8')
    if not title:
        raise PreconditionError(f"{title_path.name} is empty")
    return title, body
