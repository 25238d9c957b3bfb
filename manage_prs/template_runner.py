#!/usr/bin/env python3
"""
Run a registered template against a checked-out repository and hand the
resulting PR title and body over to the lifecycle step.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

from manage_prs.config import PR_TITLE_PREFIX
from manage_prs.errors import PreconditionError, TemplateExecutionError
from manage_prs.templates import PatchResult, Template, TemplateParams, get_template
from manage_prs.utils import write_handoff

logger = logging.getLogger(__name__)


def run_template(template: Template, workdir: Union[str, Path], params: TemplateParams) -> PatchResult:
    """
    Execute a template's patch logic.

    Any exception raised by the template is logged and turned into exit
    code 1; it is not retried.

    Returns:
        PatchResult; exit_code is 0 on success (changed or not)
    """
    logger.info(f"⚙ Processing {params.repository} with template {template.name}")
    try:
        result = template.patch(Path(workdir), params)
    except Exception as e:
        logger.error(f"✗ Template {template.name} failed: {e}")
        return PatchResult(changed=False, exit_code=1)

    if result.exit_code != 0:
        logger.error(f"✗ Template {template.name} exited with {result.exit_code}")
    elif result.changed:
        logger.info(f"✓ All changes applied ({', '.join(result.files) or 'files changed'})")
    else:
        logger.info("⊘ No changes needed, no PR will be created")
    return result


def read_description(template: Template) -> Tuple[str, str]:
    """
    Title and body from the template's description document.

    The first line is the title; the remaining lines, stripped, are the body.

    Raises:
        PreconditionError: If the document is missing or has no title
    """
    path = template.description_path
    if not path.exists():
        raise PreconditionError(f"Description {path.name} for template {template.name} is missing")

    lines = path.read_text(encoding='utf-8').split('\n')
    title = lines[0].strip()
    if not title:
        raise PreconditionError(f"Description {path.name} has no title line")
    body = '\n'.join(lines[1:]).strip()
    return title, body


def build_pr_text(template: Template, parameter_data: str = "") -> Tuple[str, str]:
    """PR title and body for a template run, with the template footer."""
    title, body = read_description(template)
    body += "\n\n---\n\n"
    body += f"**Template**: {template.name}\n"
    if parameter_data:
        body += f"**Parameters**: {parameter_data}\n"
    return f"{PR_TITLE_PREFIX}{title}", body


def apply_template(
    repository: str,
    template_name: str,
    parameter_data: str = "",
    workdir: Union[str, Path] = ".",
    client=None,
    handoff_dir: Optional[Union[str, Path]] = None
) -> PatchResult:
    """
    Apply a template to a checked-out repository and write the hand-off files.

    Args:
        repository: Repository identifier (owner/name)
        template_name: Registered template name
        parameter_data: Free-form template input, echoed into the PR body
        workdir: Repository checkout the template operates on
        client: Platform client used for the existence check; skipped when None
        handoff_dir: Where .pr-title/.pr-body are written (default: workdir)

    Raises:
        TemplateNotFoundError: If the template is not registered
        PreconditionError: If a template asset is missing or the repository does not exist
        TemplateExecutionError: If the template fails
    """
    logger.info(f"Processing repository: {repository}")
    logger.info(f"Using template: {template_name}")
    if parameter_data:
        logger.info(f"Parameter data: {parameter_data}")

    template = get_template(template_name)
    title, body = build_pr_text(template, parameter_data)
    logger.info(f"✓ Template files for template {template_name} exist")

    if client is not None:
        if not client.repository_exists(repository):
            raise PreconditionError(f"Repository \"{repository}\" does not exist or is not accessible")
        logger.info(f"✓ Repository {repository} exists")

    result = run_template(template, workdir, TemplateParams(template_name, repository, parameter_data))
    if result.exit_code != 0:
        raise TemplateExecutionError(f"Template {template_name} failed with exit code {result.exit_code}")

    title_path, body_path = write_handoff(title, body, handoff_dir if handoff_dir is not None else workdir)
    logger.info(f"✓ Created PR title file: {title_path}")
    logger.info(f"✓ Created PR body file: {body_path}")
    return result
