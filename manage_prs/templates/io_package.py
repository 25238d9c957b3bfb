#!/usr/bin/env python3
"""
Templates editing the adapter metadata in io-package.json.
"""

import logging
from pathlib import Path
from typing import List, Sequence

from manage_prs.errors import PreconditionError
from manage_prs.templates.base import PatchResult, TemplateParams, load_json, require_file
from manage_prs.text_patcher import delete_key, patch_file, set_value

logger = logging.getLogger(__name__)

IO_PACKAGE = "io-package.json"
PACKAGE_JSON = "package.json"

VISUALIZATION_TYPES = ("visualization", "visualization-icons", "visualization-widgets")
VALID_TIERS = (1, 2, 3)


def _result(changed: bool, *names: str) -> PatchResult:
    return PatchResult(changed=changed, files=list(names) if changed else [])


def _common(data) -> dict:
    common = data.get("common") if isinstance(data, dict) else None
    if not isinstance(common, dict):
        raise PreconditionError(f"'common' section not found in {IO_PACKAGE}")
    return common


def _has(data, path: Sequence[str]) -> bool:
    node = data
    for key in path:
        if not isinstance(node, dict) or key not in node:
            return False
        node = node[key]
    return True


def _remove_members(workdir: Path, paths: List[Sequence[str]]) -> PatchResult:
    """Delete every member in paths that exists; io-package.json itself is required."""
    path = require_file(workdir, IO_PACKAGE)
    data = load_json(path)
    present = [p for p in paths if _has(data, p)]
    if not present:
        names = " nor ".join('.'.join(p) for p in paths)
        logger.info(f"✓ {names} does not exist, no need for a PR")
        return _result(False)

    for p in present:
        logger.info(f"ⓘ Removing {'.'.join(p)}")
    edits = [lambda text, p=p: delete_key(text, p) for p in present]
    return _result(patch_file(path, *edits), IO_PACKAGE)


# ============================================================================
# W1084: obsolete common attributes
# ============================================================================

def remove_common_title(workdir: Path, params: TemplateParams) -> PatchResult:
    path = require_file(workdir, IO_PACKAGE)
    common = _common(load_json(path))
    if "title" not in common:
        logger.info("✓ common.title does not exist, no need for a PR")
        return _result(False)
    if "titleLang" not in common:
        logger.warning("⚠ common.titleLang does not exist, common.title is kept")
        return _result(False)
    return _remove_members(workdir, [("common", "title")])


def remove_common_main(workdir: Path, params: TemplateParams) -> PatchResult:
    return _remove_members(workdir, [("common", "main")])


def remove_installed_from(workdir: Path, params: TemplateParams) -> PatchResult:
    return _remove_members(workdir, [("common", "installedFrom"), ("installedFrom",)])


def remove_fa_icon(workdir: Path, params: TemplateParams) -> PatchResult:
    return _remove_members(workdir, [("common", "adminTab", "fa-icon")])


# ============================================================================
# W1035: common.tier
# ============================================================================

def add_tier(workdir: Path, params: TemplateParams) -> PatchResult:
    """
    Set common.tier to 3 for visualization adapters and 2 for all others.

    A valid tier (1, 2 or 3) is left alone. A new member goes after
    "loglevel", else before "licenseInformation" or "license", else last.
    """
    path = workdir / IO_PACKAGE
    if not path.exists():
        logger.info(f"ⓘ {IO_PACKAGE} does not exist, no need for a PR")
        return _result(False)

    common = _common(load_json(path))
    adapter_type = common.get("type")
    tier = 3 if adapter_type in VISUALIZATION_TYPES else 2
    logger.info(f"ⓘ Adapter type is '{adapter_type}', default tier is {tier}")

    current = common.get("tier")
    if "tier" in common and not isinstance(current, bool) and current in VALID_TIERS:
        logger.info(f"✓ common.tier already set to {current}, no need for a PR")
        return _result(False)
    if "tier" in common:
        logger.info(f"ⓘ common.tier has invalid value {current!r}, setting {tier}")

    changed = patch_file(
        path,
        lambda text: set_value(
            text, ["common", "tier"], tier,
            after=["loglevel"],
            before=["licenseInformation", "license"]
        )
    )
    return _result(changed, IO_PACKAGE)


# ============================================================================
# W1081: common.licenseInformation
# ============================================================================

def _find_license(workdir: Path, common: dict) -> str:
    license_value = common.get("license")
    if license_value:
        logger.info(f"✓ Found common.license: {license_value}")
        return license_value

    package_json = workdir / PACKAGE_JSON
    if package_json.exists():
        license_value = load_json(package_json).get("license")
        if isinstance(license_value, dict):
            license_value = license_value.get("type")
        if license_value:
            logger.info(f"✓ Found license in {PACKAGE_JSON}: {license_value}")
            return license_value

    raise PreconditionError(f"No license information found in {IO_PACKAGE} or {PACKAGE_JSON}")


def add_license_information(workdir: Path, params: TemplateParams) -> PatchResult:
    """Replace common.license by a common.licenseInformation object."""
    path = workdir / IO_PACKAGE
    if not path.exists():
        logger.info(f"ⓘ {IO_PACKAGE} does not exist, no need for a PR")
        return _result(False)

    common = _common(load_json(path))
    if "licenseInformation" in common:
        logger.info("✓ common.licenseInformation already exists, no need for a PR")
        return _result(False)

    information = {"type": "free", "license": _find_license(workdir, common)}
    edits = [
        lambda text: set_value(text, ["common", "licenseInformation"], information, before=["license"])
    ]
    if "license" in common:
        edits.append(lambda text: delete_key(text, ["common", "license"]))
    return _result(patch_file(path, *edits), IO_PACKAGE)


def license_report_init(context) -> None:
    context.report.clear()
    logger.info(f"ⓘ Filter initialized for template {context.template}")


def license_report_filter(context) -> bool:
    context.report.append(f"{context.owner}/{context.repository}")
    return True


def license_report_finalize(context) -> None:
    logger.info(f"ⓘ {len(context.report)} repositories passed the filter for {context.template}")
    for entry in context.report:
        logger.debug(f"  - {entry}")
