#!/usr/bin/env python3
"""
Template model and helpers shared by the built-in templates.

A template changes files in a checked-out repository and reports whether it
did. When no change is warranted it must leave every file untouched and
return changed=False; an empty diff is what keeps a pull request from being
opened.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional

from manage_prs.errors import PreconditionError
from manage_prs.text_patcher import parse_document, read_document

logger = logging.getLogger(__name__)

DESCRIPTIONS_DIR = Path(__file__).parent / "descriptions"


@dataclass
class PatchResult:
    changed: bool
    exit_code: int = 0
    files: List[str] = field(default_factory=list)


@dataclass
class TemplateParams:
    template: str
    repository: str
    data: str = ""


@dataclass
class Template:
    """
    A named mutation unit.

    Attributes:
        name: Registry key, also the name of the description document
        patch: Applies the change to a working directory
        filter: Fleet walk predicate; repositories it rejects are not triggered
        init: Called once before a fleet walk with the walk context
        finalize: Called once after a fleet walk with the walk context
    """
    name: str
    patch: Callable[[Path, TemplateParams], PatchResult]
    filter: Optional[Callable[[Any], bool]] = None
    init: Optional[Callable[[Any], None]] = None
    finalize: Optional[Callable[[Any], None]] = None

    @property
    def description_path(self) -> Path:
        return DESCRIPTIONS_DIR / f"{self.name}.md"


def require_file(workdir: Path, name: str) -> Path:
    """
    Raises:
        PreconditionError: If workdir/name does not exist
    """
    path = workdir / name
    if not path.exists():
        raise PreconditionError(f"{name} does not exist")
    logger.info(f"✓ {name} exists")
    return path


def load_json(path: Path) -> Any:
    """Parsed content of a JSON document; MalformedOutputError if it does not parse."""
    return parse_document(read_document(path))
