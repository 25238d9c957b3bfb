#!/usr/bin/env python3
"""
Templates for plain repository files: .gitignore, LICENSE and README.md.
"""

import logging
import re
from pathlib import Path
from typing import Callable

from manage_prs.errors import NotFoundError, PreconditionError
from manage_prs.line_patcher import append_line_unique, rewrite_section, validate_text
from manage_prs.templates.base import PatchResult, TemplateParams
from manage_prs.text_patcher import PatchOutcome, patch_file

logger = logging.getLogger(__name__)

GITIGNORE = ".gitignore"
LICENSE = "LICENSE"
README = "README.md"

COMMITINFO = ".commitinfo"
DEFAULT_COPYRIGHT_YEAR = 2025

_COPYRIGHT = re.compile(r'Copyright\s+\(c\)\s+(\d{4})(?:\s*-\s*(\d{4}))?(\s+)', re.IGNORECASE)


# ============================================================================
# S0000: .commitinfo
# ============================================================================

def block_commitinfo(workdir: Path, params: TemplateParams) -> PatchResult:
    path = workdir / GITIGNORE
    if not path.exists():
        logger.info(f"ⓘ {GITIGNORE} does not exist, no need for a PR")
        return PatchResult(changed=False)

    changed = patch_file(
        path,
        lambda text: append_line_unique(
            text, COMMITINFO, comment="ignore .commitinfo created by ioBroker release script"
        ),
        validate=validate_text
    )
    if not changed:
        logger.info(f"✓ {GITIGNORE} already contains {COMMITINFO}, no need for a PR")
    return PatchResult(changed=changed, files=[GITIGNORE] if changed else [])


# ============================================================================
# X0000: copyright year
# ============================================================================

def update_copyright(text: str, year: int) -> str:
    """
    Extend 'Copyright (c) YYYY' and 'Copyright (c) YYYY - YYYY' to end at year.

    Notices already ending at year or later are left as they are.
    """
    def replace(match):
        start = int(match.group(1))
        end = int(match.group(2)) if match.group(2) else None
        newest = end or start
        if newest >= year:
            return match.group(0)
        logger.info(f"ⓘ Updating copyright {match.group(0).strip()} to end at {year}")
        return f"Copyright (c) {start} - {year}{match.group(3)}"

    return _COPYRIGHT.sub(replace, text)


def _copyright_edit(year: int) -> Callable[[str], PatchOutcome]:
    def edit(text: str) -> PatchOutcome:
        new_text = update_copyright(text, year)
        return PatchOutcome(new_text, new_text != text)
    return edit


def target_year(data: str) -> int:
    """
    Year given as template parameter data, DEFAULT_COPYRIGHT_YEAR when empty.

    Raises:
        PreconditionError: If data is not a four digit year
    """
    data = (data or "").strip()
    if not data:
        return DEFAULT_COPYRIGHT_YEAR
    if not re.fullmatch(r'\d{4}', data):
        raise PreconditionError(f"Invalid copyright year '{data}'")
    return int(data)


def update_copyright_year(workdir: Path, params: TemplateParams) -> PatchResult:
    year = target_year(params.data)
    edit = _copyright_edit(year)
    files = []

    readme = workdir / README
    if readme.exists():
        try:
            changed = patch_file(
                readme,
                lambda text: rewrite_section(text, "License", lambda section: update_copyright(section, year)),
                validate=validate_text
            )
            if changed:
                files.append(README)
        except NotFoundError:
            logger.info(f"ⓘ Section 'License' not found in {README}")
    else:
        logger.info(f"ⓘ {README} does not exist, skipping")

    license_path = workdir / LICENSE
    if license_path.exists():
        if patch_file(license_path, edit, validate=validate_text):
            files.append(LICENSE)
    else:
        logger.info(f"ⓘ {LICENSE} does not exist, skipping")

    if not files:
        logger.info("ⓘ Copyright years are already up to date")
    return PatchResult(changed=bool(files), files=files)
