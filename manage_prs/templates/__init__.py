"""
Built-in templates, registered by name.

To add a template: write its patch function in one of the modules below,
add a description document to descriptions/<name>.md (first line = PR
title, rest = PR body) and register it in TEMPLATES.
"""

from typing import Dict

from manage_prs.errors import TemplateNotFoundError
from manage_prs.templates.base import PatchResult, Template, TemplateParams
from manage_prs.templates.io_package import (
    add_license_information,
    add_tier,
    license_report_filter,
    license_report_finalize,
    license_report_init,
    remove_common_main,
    remove_common_title,
    remove_fa_icon,
    remove_installed_from,
)
from manage_prs.templates.keywords import fix_keywords
from manage_prs.templates.repository_files import block_commitinfo, update_copyright_year
from manage_prs.templates.workflows import migrate_to_trusted_publishing

TEMPLATES: Dict[str, Template] = {
    t.name: t for t in (
        Template("W1084-removeCommonTitle", remove_common_title),
        Template("W1084-removeCommonMain", remove_common_main),
        Template("W1084-removeCommonInstalledFrom", remove_installed_from),
        Template("W1084-removeFa-icon", remove_fa_icon),
        Template("W1035-addTier", add_tier),
        Template(
            "W1081-addLicenseInformation",
            add_license_information,
            filter=license_report_filter,
            init=license_report_init,
            finalize=license_report_finalize,
        ),
        Template("W0040-fixKeywords", fix_keywords),
        Template("S0000-blockCommitinfo", block_commitinfo),
        Template("X0000-Copyright-2025", update_copyright_year),
        Template("X0000-MigrateToTrustedPublishing", migrate_to_trusted_publishing),
    )
}


def get_template(name: str) -> Template:
    """
    Raises:
        TemplateNotFoundError: If no template is registered under name
    """
    try:
        return TEMPLATES[name]
    except KeyError:
        raise TemplateNotFoundError(f"Template '{name}' is not registered")


__all__ = ["PatchResult", "Template", "TemplateParams", "TEMPLATES", "get_template"]
