#!/usr/bin/env python3
"""
Command line front ends.

apply-template <repo> <template> [parameter_data]
    Apply a template to the repository checked out in the current directory
    and write .pr-title / .pr-body.

manage-pr <mode> <repo> <base> <head>
    Create, skip or close the pull request described by .pr-title / .pr-body.

walk-fleet --template=<name> [--from=<key>] [--filter=<owner/name>] ...
    Trigger processing for every repository in the adapter registry.

All three exit with 0 on success or an intentional skip and with 1 on any
failure.
"""

import argparse
import functools
import logging
import subprocess
import sys
from typing import List, Optional

from manage_prs.config import (
    BOT_LOGIN,
    DEFAULT_PR_MODE,
    DELAY_BETWEEN_REPOS_SECONDS,
    REGISTRY_URL,
    RESTART_AFTER_HOURS,
)
from manage_prs.errors import ManagePrsError
from manage_prs.fleet_walker import FleetWalker, WalkOptions, fetch_registry
from manage_prs.github import GitHubClient
from manage_prs.pr_lifecycle import Mode, PRLifecycle, parse_mode
from manage_prs.template_runner import apply_template
from manage_prs.templates import TEMPLATES, get_template
from manage_prs.utils import read_handoff, setup_logging

logger = logging.getLogger(__name__)


def _banner(title: str) -> None:
    logger.info("=" * 60)
    logger.info(title)
    logger.info("=" * 60)


# ============================================================================
# apply-template
# ============================================================================

def apply_template_command(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="apply-template",
        description="Apply a template to a checked-out repository",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Available templates:\n" + "\n".join(f"  {name}" for name in TEMPLATES)
    )
    parser.add_argument("repository", help="Repository identifier (owner/name)")
    parser.add_argument("template", help="Template name")
    parser.add_argument("parameter_data", nargs="?", default="", help="Optional template input")
    parser.add_argument(
        "--workdir",
        default=".",
        help="Repository checkout to modify (default: current directory)"
    )
    parser.add_argument(
        "--skip-repo-check",
        action="store_true",
        help="Do not check that the repository exists on GitHub"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    client = None if args.skip_repo_check else GitHubClient()
    try:
        apply_template(
            args.repository,
            args.template,
            args.parameter_data,
            workdir=args.workdir,
            client=client
        )
    except ManagePrsError as e:
        logger.error(f"✗ Error applying template: {e}")
        return 1
    return 0


# ============================================================================
# manage-pr
# ============================================================================

def manage_pr_command(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="manage-pr",
        description="Create, skip or close a pull request according to a mode",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Modes: " + ", ".join(m.value for m in Mode)
    )
    parser.add_argument("mode", help="PR mode, e.g. recreate or 'skip if existing'")
    parser.add_argument("repository", help="Repository identifier (owner/name)")
    parser.add_argument("base", help="Base branch")
    parser.add_argument("head", help="Head branch")
    parser.add_argument(
        "--handoff-dir",
        default=".",
        help="Directory holding .pr-title and .pr-body (default: current directory)"
    )
    parser.add_argument(
        "--bot-login",
        default=BOT_LOGIN,
        help="Login of the bot account (default: the authenticated gh user)"
    )
    parser.add_argument("--dry-run", action="store_true", help="Log write actions instead of running them")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        title, body = read_handoff(args.handoff_dir)
        mode = parse_mode(args.mode)
    except ManagePrsError as e:
        logger.error(f"✗ {e}")
        return 1

    if args.dry_run:
        _banner("DRY RUN MODE - No changes will be made")
    logger.info(f"ⓘ PR Manager Mode: {mode.value}")
    logger.info(f"ⓘ Repository: {args.repository}")
    logger.info(f"ⓘ PR Title: {title}")
    logger.info(f"ⓘ Base Branch: {args.base}")
    logger.info(f"ⓘ Head Branch: {args.head}")

    lifecycle = PRLifecycle(GitHubClient(dry_run=args.dry_run), args.repository, bot_login=args.bot_login)
    try:
        result = lifecycle.run(mode, title, body, args.base, args.head)
    except ManagePrsError as e:
        logger.error(f"✗ {e}")
        return 1
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
        logger.error(f"✗ GitHub command failed: {e}")
        return 1

    if result["close_failures"]:
        logger.warning(f"⚠ Could not close: {', '.join('#' + str(f['number']) for f in result['close_failures'])}")
    logger.info(f"✓ Completed successfully ({result['action']})")
    return 0


# ============================================================================
# walk-fleet
# ============================================================================

def walk_fleet_command(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="walk-fleet",
        description="Trigger template processing for every repository in the registry"
    )
    parser.add_argument("--template", required=True, help="Template name")
    parser.add_argument("--from", dest="start_from", default="", help="Registry key to resume from")
    parser.add_argument("--filter", dest="repo_filter", default=None, help="owner/name pattern, '*' allowed")
    parser.add_argument(
        "--delay",
        type=float,
        default=DELAY_BETWEEN_REPOS_SECONDS,
        help=f"Seconds between triggered repositories (default: {DELAY_BETWEEN_REPOS_SECONDS})"
    )
    parser.add_argument(
        "--restart-after-hours",
        type=float,
        default=RESTART_AFTER_HOURS,
        help=f"Time budget per run before a restart is dispatched (default: {RESTART_AFTER_HOURS})"
    )
    parser.add_argument("--dry", action="store_true", help="Do not trigger any processing")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--parameter_data", default="", help="Template input passed to every run")
    parser.add_argument("--pr_mode", default=DEFAULT_PR_MODE, help=f"PR mode (default: {DEFAULT_PR_MODE})")
    parser.add_argument("--registry-url", default=REGISTRY_URL, help="Registry to walk")
    args = parser.parse_args(argv)
    setup_logging(args.debug)

    try:
        template = get_template(args.template)
        mode = parse_mode(args.pr_mode)
    except ManagePrsError as e:
        logger.error(f"✗ {e}")
        return 1

    _banner("walk-fleet - Starting")
    logger.info(f"ⓘ Template: {template.name}")
    logger.info(f"ⓘ Parameter Data: {args.parameter_data or '(none)'}")
    logger.info(f"ⓘ PR Mode: {mode.value}")
    logger.info(f"ⓘ From: {args.start_from or '(start from beginning)'}")
    logger.info(f"ⓘ Filter: {args.repo_filter or '(none)'}")
    logger.info(f"ⓘ Dry Run: {args.dry}")
    logger.info("=" * 60)

    options = WalkOptions(
        template=template.name,
        parameter_data=args.parameter_data,
        pr_mode=mode.value,
        start_from=args.start_from,
        repo_filter=args.repo_filter,
        delay=args.delay,
        restart_after_hours=args.restart_after_hours,
        dry_run=args.dry,
        debug=args.debug,
    )
    walker = FleetWalker(
        options,
        GitHubClient(),
        template=template,
        fetch=functools.partial(fetch_registry, args.registry_url)
    )
    try:
        summary = walker.walk()
    except ManagePrsError as e:
        logger.error(f"✗ {e}")
        return 1

    logger.info("")
    _banner("SUMMARY REPORT")
    logger.info(f"Total repositories: {summary['total']}")
    logger.info(f"Triggered: {len(summary['triggered'])}")
    logger.info(f"Filtered: {len(summary['filtered'])}")
    logger.info(f"Failed: {len(summary['failed'])}")
    if summary["invalid"]:
        logger.info(f"Invalid entries: {', '.join(summary['invalid'])}")
    if summary["restart_from"]:
        logger.info(f"Restart dispatched from: {summary['restart_from']}")
    for key in summary["failed"]:
        logger.error(f"  - {key}: trigger failed")
    return 0


# ============================================================================
# ENTRY POINTS
# ============================================================================

def apply_template_main():
    sys.exit(apply_template_command())


def manage_pr_main():
    sys.exit(manage_pr_command())


def walk_fleet_main():
    sys.exit(walk_fleet_command())
