#!/usr/bin/env python3
"""
X0000: migrate the npm release step to trusted publishing.

The deploy step of test-and-release.yml stops passing an npm token, and
the job running it gets the permissions trusted publishing needs.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from manage_prs.errors import PreconditionError
from manage_prs.line_patcher import (
    ancestors,
    comment_out_key,
    ensure_mapping,
    find_key,
    item_end,
    split_lines,
    validate_yaml,
)
from manage_prs.templates.base import PatchResult, TemplateParams
from manage_prs.text_patcher import patch_file, read_document

logger = logging.getLogger(__name__)

WORKFLOW = Path(".github") / "workflows" / "test-and-release.yml"
DEPLOY_ACTION = "ioBroker/testing-action-deploy@v1"
TOKEN_INPUT = "npm-token"
REQUIRED_PERMISSIONS = {"contents": "write", "id-token": "write"}
MIGRATION_NOTE = "Commented out for migration to Trusted Publishing"


def _deploy_line(lines) -> Optional[int]:
    for i, line in enumerate(lines):
        if DEPLOY_ACTION in line and not line.strip().startswith('#'):
            return i
    return None


def _step_start(lines, deploy: int) -> int:
    if lines[deploy].lstrip().startswith('-'):
        return deploy
    for index in ancestors(lines, deploy):
        if lines[index].lstrip().startswith('-'):
            return index
    raise PreconditionError(f"Could not find the step using {DEPLOY_ACTION}")


def _job_line(lines, deploy: int) -> int:
    chain = ancestors(lines, deploy)
    for position, index in enumerate(chain):
        if re.match(r'^jobs[ \t]*:', lines[index]) and position > 0:
            return chain[position - 1]
    raise PreconditionError(f"Could not find the job running {DEPLOY_ACTION}")


def migrate_to_trusted_publishing(workdir: Path, params: TemplateParams) -> PatchResult:
    path = workdir / WORKFLOW
    if not path.exists():
        logger.info(f"ⓘ {WORKFLOW} does not exist, no changes needed")
        return PatchResult(changed=False)

    lines = split_lines(read_document(path))
    deploy = _deploy_line(lines)
    if deploy is None:
        logger.info(f"ⓘ Workflow does not use {DEPLOY_ACTION}, no changes needed")
        return PatchResult(changed=False)

    step = _step_start(lines, deploy)
    if find_key(lines, TOKEN_INPUT, step, item_end(lines, step)) is None:
        logger.info(f"ⓘ {DEPLOY_ACTION} does not pass '{TOKEN_INPUT}', no changes needed")
        return PatchResult(changed=False)

    job = _job_line(lines, deploy)
    logger.info(f"✓ Found '{TOKEN_INPUT}' in the deploy step (line {step + 1}), job at line {job + 1}")

    # commenting out keeps the line count, so the job index stays valid
    changed = patch_file(
        path,
        lambda text: comment_out_key(text, TOKEN_INPUT, start=step, note=MIGRATION_NOTE),
        lambda text: ensure_mapping(text, job, "permissions", REQUIRED_PERMISSIONS),
        validate=validate_yaml
    )
    return PatchResult(changed=changed, files=[str(WORKFLOW)] if changed else [])
