#!/usr/bin/env python3
"""
W0040: keyword hygiene in package.json and io-package.json.

package.json must list "ioBroker" exactly once with that spelling;
io-package.json must not list the generic keywords "iobroker", "adapter"
or "smart home" in any spelling.
"""

import logging
from pathlib import Path

from manage_prs.errors import PreconditionError
from manage_prs.templates.base import PatchResult, TemplateParams, load_json, require_file
from manage_prs.text_patcher import append_unique, remove_matching, render_edits, set_value, write_document

logger = logging.getLogger(__name__)

IO_PACKAGE = "io-package.json"
PACKAGE_JSON = "package.json"

REQUIRED_KEYWORD = "ioBroker"
FORBIDDEN_IO_KEYWORDS = ("iobroker", "adapter", "smart home")


def is_misspelled_iobroker(item) -> bool:
    return isinstance(item, str) and item.lower() == REQUIRED_KEYWORD.lower() and item != REQUIRED_KEYWORD


def is_forbidden_io_keyword(item) -> bool:
    return isinstance(item, str) and item.lower() in FORBIDDEN_IO_KEYWORDS


def fix_keywords(workdir: Path, params: TemplateParams) -> PatchResult:
    package_path = require_file(workdir, PACKAGE_JSON)
    io_path = require_file(workdir, IO_PACKAGE)
    package = load_json(package_path)
    io_package = load_json(io_path)

    # check both files before writing either of them
    if "keywords" in package and not isinstance(package["keywords"], list):
        raise PreconditionError(f"keywords in {PACKAGE_JSON} is not an array")
    common = io_package.get("common")
    if not isinstance(common, dict):
        raise PreconditionError(f"'common' section does not exist in {IO_PACKAGE}")
    if "keywords" in common and not isinstance(common["keywords"], list):
        raise PreconditionError(f"common.keywords in {IO_PACKAGE} is not an array")

    if "keywords" not in package:
        logger.info(f"ⓘ Adding keywords array with \"{REQUIRED_KEYWORD}\" to {PACKAGE_JSON}")
        edits = [lambda text: set_value(text, ["keywords"], [REQUIRED_KEYWORD])]
    else:
        edits = [
            lambda text: remove_matching(text, ["keywords"], is_misspelled_iobroker),
            lambda text: append_unique(text, ["keywords"], REQUIRED_KEYWORD, index=0),
        ]
    package_text = render_edits(package_path, *edits)

    io_text = None
    if "keywords" not in common:
        logger.info(f"ⓘ common.keywords does not exist in {IO_PACKAGE}, nothing to remove")
    else:
        io_text = render_edits(
            io_path, lambda text: remove_matching(text, ["common", "keywords"], is_forbidden_io_keyword)
        )

    # both edits succeeded, now write
    files = []
    for name, path, text in ((PACKAGE_JSON, package_path, package_text), (IO_PACKAGE, io_path, io_text)):
        if text is None:
            logger.info(f"ⓘ No changes needed in {name}")
            continue
        write_document(path, text)
        logger.info(f"✓ Updated {path}")
        files.append(name)

    return PatchResult(changed=bool(files), files=files)
