#!/usr/bin/env python3
"""
Walk the adapter registry and trigger per-repository processing.

Each repository that passes the filters gets one workflow run in the bot
repository. Runs are paced by a fixed delay; once the run's time budget is
used up, a restart is dispatched carrying the next unprocessed registry key
so a fresh run continues with --from=<key>.
"""

import logging
import re
import subprocess
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from manage_prs.config import (
    DEFAULT_PR_MODE,
    DELAY_BETWEEN_REPOS_SECONDS,
    DRY_RUN_DELAY_SECONDS,
    REGISTRY_URL,
    REPOSITORY_NAME_PREFIX,
    REQUEST_TIMEOUT,
    RESERVED_KEY_PREFIX,
    RESTART_AFTER_HOURS,
)
from manage_prs.errors import PreconditionError
from manage_prs.templates import Template

logger = logging.getLogger(__name__)


# ============================================================================
# REGISTRY
# ============================================================================

def fetch_registry(url: str = REGISTRY_URL) -> Dict[str, Any]:
    """
    Download the registry: adapter key -> metadata (with a "meta" URL).

    Raises:
        PreconditionError: If the registry cannot be fetched or parsed
    """
    logger.info(f"ⓘ Retrieving \"{url}\"")
    try:
        response = requests.get(url, headers={"User-Agent": "manage-prs"}, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        registry = response.json()
    except requests.RequestException as e:
        raise PreconditionError(f"Failed to fetch repository data: {e}")
    except ValueError as e:
        raise PreconditionError(f"Failed to parse repository data: {e}")

    if not isinstance(registry, dict):
        raise PreconditionError("Repository data is not a JSON object")
    logger.info(f"ⓘ Retrieved {len(registry)} entries")
    return registry


def owner_from_meta(meta: str) -> str:
    """Owning account from a meta URL like https://raw.githubusercontent.com/<owner>/..."""
    parts = meta.split('/')
    if len(parts) < 4 or not parts[3]:
        raise ValueError(f"Cannot derive owner from '{meta}'")
    return parts[3]


def is_reserved(key: str) -> bool:
    return key.startswith(RESERVED_KEY_PREFIX)


# ============================================================================
# FILTERING
# ============================================================================

def _glob_to_regex(glob: str) -> re.Pattern:
    return re.compile('^' + '.*'.join(re.escape(part) for part in glob.split('*')) + '$', re.IGNORECASE)


class RepoFilter:
    """
    "owner/name" pattern with '*' wildcards, matched case-insensitively.

    A pattern without '/' only constrains the owner.
    """

    def __init__(self, pattern: str):
        self.pattern = pattern
        owner, _, name = pattern.partition('/')
        self.owner_re = _glob_to_regex(owner or '*')
        self.name_re = _glob_to_regex(name or '*')

    def matches(self, owner: str, name: str) -> bool:
        return bool(self.owner_re.match(owner)) and bool(self.name_re.match(name))

    def __repr__(self) -> str:
        return f"RepoFilter({self.pattern!r})"


# ============================================================================
# WALK
# ============================================================================

@dataclass
class WalkContext:
    """State shared with a template's filter hooks for the length of one walk."""
    template: str
    owner: Optional[str] = None
    adapter: Optional[str] = None
    repository: Optional[str] = None
    report: List[Any] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class WalkOptions:
    template: str
    parameter_data: str = ""
    pr_mode: str = DEFAULT_PR_MODE
    start_from: str = ""
    repo_filter: Optional[str] = None
    delay: float = DELAY_BETWEEN_REPOS_SECONDS
    restart_after_hours: float = RESTART_AFTER_HOURS
    dry_run: bool = False
    debug: bool = False


class FleetWalker:
    """
    Iterate the registry and trigger processing for each selected repository.

    Args:
        options: Walk settings
        client: Platform client with trigger_workflow() and dispatch_event()
        template: Template whose filter/init/finalize hooks apply, if any
        fetch: Returns the registry mapping
        sleep: Called with the pacing delay in seconds
    """

    def __init__(
        self,
        options: WalkOptions,
        client,
        template: Optional[Template] = None,
        fetch: Callable[[], Dict[str, Any]] = fetch_registry,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.options = options
        self.client = client
        self.template = template
        self.fetch = fetch
        self.sleep = sleep
        self.repo_filter = RepoFilter(options.repo_filter) if options.repo_filter else None
        self.context = WalkContext(template=options.template)

    def restart_budget(self) -> Optional[int]:
        """Triggers allowed before a restart; None when restarts are disabled."""
        if self.options.delay <= 0:
            return None
        # a delay longer than the restart window still allows one trigger per run
        return max(1, int(self.options.restart_after_hours * 3600 // self.options.delay))

    def _pause(self) -> None:
        self.sleep(DRY_RUN_DELAY_SECONDS if self.options.dry_run else self.options.delay)

    def _trigger(self, owner: str, name: str) -> bool:
        repo_url = f"https://github.com/{owner}/{name}"
        if self.options.dry_run:
            logger.info(f"    [DRY RUN] Would trigger processing for {repo_url}")
            return True

        logger.info(f"    ⏳ Triggering workflow for {repo_url}")
        try:
            self.client.trigger_workflow({
                "repository_url": repo_url,
                "template": self.options.template,
                "parameter_data": self.options.parameter_data,
                "pr_mode": self.options.pr_mode,
            })
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            logger.error(f"    ✗ Failed to trigger workflow: {e}")
            return False
        logger.info("    ✓ Workflow triggered successfully")
        return True

    def _restart(self, key: str) -> bool:
        logger.info(f"ⓘ Restart limit reached, will restart from adapter: {key}")
        payload = {
            "template": self.options.template,
            "parameter_data": self.options.parameter_data,
            "pr_mode": self.options.pr_mode,
            "from": key,
        }
        flags = []
        if self.options.debug:
            flags.append("--debug")
        if self.options.dry_run:
            flags.append("--dry")
        if flags:
            payload["flags"] = ' '.join(flags)
        try:
            self.client.dispatch_event(payload)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            logger.error(f"✗ Failed to trigger restart: {e}")
            return False
        logger.info("✓ Restart triggered successfully")
        return True

    def walk(self) -> Dict[str, Any]:
        """
        Process the registry once.

        Entries are checked in this order: reserved key, --from resume point,
        owner/name filter, restart budget, template filter. Only triggered
        entries use up the budget and pay the delay.

        Returns:
            Summary dictionary
        """
        registry = self.fetch()
        keys = [k for k in registry if not is_reserved(k)]
        total = len(keys)
        budget = self.restart_budget()

        summary = {
            "total": total,
            "triggered": [],
            "failed": [],
            "filtered": [],
            "invalid": [],
            "restart_from": None,
        }

        logger.info(f"ⓘ Found {total} repositories to process")
        if budget is not None:
            logger.info(f"ⓘ Delay between repositories: {self.options.delay}s, restart after {budget} repositories")

        if self.template is not None and self.template.init:
            self.template.init(self.context)

        skipping = bool(self.options.start_from)
        if skipping:
            logger.info(f"ⓘ --from set to \"{self.options.start_from}\" - searching for first adapter to process ...")

        position = 0
        for key in registry:
            if is_reserved(key):
                logger.debug(f"Skipping internal entry: {key}")
                continue
            position += 1

            if skipping:
                if key != self.options.start_from:
                    logger.debug(f"Skipping {key} (before resume point)")
                    continue
                skipping = False
                logger.info(f"ⓘ Found resume point: {key}")

            entry = registry[key] or {}
            try:
                owner = owner_from_meta(str(entry.get("meta", "")))
            except (ValueError, AttributeError) as e:
                logger.warning(f"⚠ Skipping {key}: {e}")
                summary["invalid"].append(key)
                continue
            name = f"{REPOSITORY_NAME_PREFIX}{key}"

            if self.repo_filter and not self.repo_filter.matches(owner, name):
                logger.debug(f"Skipping {owner}/{name} (does not match {self.repo_filter.pattern})")
                summary["filtered"].append(key)
                continue

            if budget is not None and budget <= 0:
                self._restart(key)
                summary["restart_from"] = key
                break

            logger.info("")
            logger.info(f"ⓘ Processing {owner}/{name} ({position}/{total})")
            self.context.owner = owner
            self.context.adapter = key
            self.context.repository = name

            if self.template is not None and self.template.filter and not self.template.filter(self.context):
                logger.info(f"⊘ Skipping {owner}/{name} (template filter)")
                summary["filtered"].append(key)
                continue

            if self._trigger(owner, name):
                summary["triggered"].append(key)
            else:
                summary["failed"].append(key)

            if budget is not None:
                budget -= 1
                logger.info(f"ⓘ Will restart after {budget} more repositories, sleeping ({self.options.delay}s) ...")
            self._pause()

        if skipping:
            logger.warning(f"⚠ Resume point \"{self.options.start_from}\" not found in registry")

        if self.template is not None and self.template.finalize:
            self.template.finalize(self.context)

        return summary
