#!/usr/bin/env python3
"""
Pull request lifecycle: decide and carry out create / skip / close for one
repository and one PR title.

The decision is a pure function of the mode and the PR records currently
on the platform (see decide()); PRLifecycle fetches those records, applies
the decision and reports the outcome.
"""

import logging
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from manage_prs.config import REVOKED_COMMENT, SUPERSEDED_COMMENT
from manage_prs.errors import PRCreateError, PreconditionError
from manage_prs.github import PRRecord

logger = logging.getLogger(__name__)


class Mode(Enum):
    FORCE_CREATION = "force-creation"
    RECREATE = "recreate"
    SKIP_IF_EXISTING = "skip-if-existing"
    SKIP_IF_CLOSED = "skip-if-closed"
    SKIP_IF_MERGED = "skip-if-merged"
    REVOKE = "revoke"


class Action(Enum):
    CREATE = "create"
    CLOSE_AND_CREATE = "close-and-create"
    CLOSE_ONLY = "close-only"
    SKIP = "skip"


@dataclass
class Decision:
    action: Action
    reason: str
    close: List[int] = field(default_factory=list)
    comment: Optional[str] = None

    @property
    def creates(self) -> bool:
        return self.action in (Action.CREATE, Action.CLOSE_AND_CREATE)


def parse_mode(value: str) -> Mode:
    """
    Accept "skip-if-existing", "skip if existing" and "skip_if_existing".

    Raises:
        PreconditionError: If value names no mode
    """
    normalized = '-'.join(value.strip().lower().replace('_', ' ').replace('-', ' ').split())
    try:
        return Mode(normalized)
    except ValueError:
        valid = ', '.join(m.value for m in Mode)
        raise PreconditionError(f"Invalid mode \"{value}\" (valid modes: {valid})")


def closed_by_other(records: List[PRRecord], bot_login: Optional[str]) -> bool:
    """
    True when the newest closed-unmerged PR was closed by someone else.

    Only the highest-numbered CLOSED record is inspected. A record whose
    closer is unknown does not count as rejected.
    """
    closed = [r for r in records if r.is_closed_unmerged]
    if not closed:
        return False
    latest = max(closed, key=lambda r: r.number)
    if not latest.closed_by:
        return False
    if bot_login is None:
        return True
    return latest.closed_by.lower() != bot_login.lower()


def decide(mode: Mode, records: List[PRRecord], bot_login: Optional[str]) -> Decision:
    """
    Pick the action for mode given the PRs that share the title.

    Every creating path closes all OPEN PRs first, so at most one OPEN PR
    with the title remains afterwards.
    """
    open_numbers = sorted(r.number for r in records if r.is_open)

    if mode is Mode.REVOKE:
        if open_numbers:
            return Decision(Action.CLOSE_ONLY, "revoking open pull request(s)", open_numbers, REVOKED_COMMENT)
        return Decision(Action.SKIP, "no open pull request to revoke")

    if mode is Mode.SKIP_IF_EXISTING and open_numbers:
        return Decision(Action.SKIP, "open pull request with the same title already exists")

    if mode is Mode.RECREATE and not open_numbers and closed_by_other(records, bot_login):
        return Decision(Action.SKIP, "pull request was closed without merge by someone else")

    if mode is Mode.SKIP_IF_CLOSED and closed_by_other(records, bot_login):
        return Decision(Action.SKIP, "pull request was closed without merge by someone else")

    if mode is Mode.SKIP_IF_MERGED and any(r.is_merged for r in records):
        return Decision(Action.SKIP, "pull request with the same title was already merged")

    if open_numbers:
        return Decision(Action.CLOSE_AND_CREATE, "replacing open pull request(s)", open_numbers, SUPERSEDED_COMMENT)
    return Decision(Action.CREATE, "no conflicting pull request")


class PRLifecycle:
    """
    Run one lifecycle decision against the platform.

    Args:
        client: Platform client (see manage_prs.github.GitHubClient)
        repo: Repository identifier (owner/name)
        bot_login: Identity the bot acts as; looked up from the client when None
    """

    def __init__(self, client, repo: str, bot_login: Optional[str] = None):
        self.client = client
        self.repo = repo
        self.bot_login = bot_login

    def _close(self, numbers: List[int], comment: str) -> List[Dict[str, Any]]:
        """Comment on and close each PR; failures are collected, not raised."""
        failures = []
        for number in numbers:
            logger.info(f"  │  Closing PR #{number}...")
            try:
                self.client.comment_pr(self.repo, number, comment)
                self.client.close_pr(self.repo, number)
                logger.info(f"  │  ✓ PR #{number} closed with comment")
            except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
                logger.warning(f"  │  ⚠ Could not close PR #{number}: {e}")
                failures.append({"number": number, "error": str(e)})
        return failures

    def run(self, mode: Mode, title: str, body: str, base: str, head: str) -> Dict[str, Any]:
        """
        Fetch existing PRs, decide and act.

        Returns:
            Dictionary with processing results

        Raises:
            PRCreateError: If the create call fails
        """
        result = {
            "repo": self.repo,
            "mode": mode.value,
            "action": None,
            "reason": None,
            "closed": [],
            "close_failures": [],
            "pr_url": None,
        }

        logger.info(f"  ┌─ {self.repo} ({mode.value})")
        if self.bot_login is None:
            self.bot_login = self.client.current_user()
        logger.info(f"  │  ⓘ Acting as {self.bot_login}")

        records = self.client.find_prs_by_title(self.repo, title)
        if records:
            logger.info(f"  │  ⓘ Found {len(records)} existing PR(s) with the same title:")
            for r in records:
                closer = f" (closed by {r.closed_by})" if r.closed_by else ""
                logger.info(f"  │      - PR #{r.number}: {r.state}{closer}")
        else:
            logger.info("  │  ⓘ No existing PRs found with the same title")

        decision = decide(mode, records, self.bot_login)
        result["action"] = decision.action.value
        result["reason"] = decision.reason

        if decision.action is Action.SKIP:
            logger.info(f"  └─ ⊘ Skipped: {decision.reason}")
            return result

        if decision.close:
            logger.info(f"  │  Closing {len(decision.close)} open PR(s): {decision.reason}")
            failures = self._close(decision.close, decision.comment)
            failed = {f["number"] for f in failures}
            result["closed"] = [n for n in decision.close if n not in failed]
            result["close_failures"] = failures
            if failures:
                logger.warning(f"  │  ⚠ {len(failures)} of {len(decision.close)} PR(s) could not be closed")

        if decision.creates:
            logger.info("  │  Creating new PR...")
            try:
                result["pr_url"] = self.client.create_pr(self.repo, title, body, base, head)
            except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
                logger.error(f"  └─ ✗ Failed to create pull request: {e}")
                raise PRCreateError(f"Failed to create pull request for {self.repo}: {e}")
            logger.info(f"  │  ✓ Pull request created {result['pr_url'] or ''}".rstrip())

        logger.info("  └─ Done")
        return result
