#!/usr/bin/env python3
"""
Code-hosting collaborator: the GitHub calls the PR tools rely on.

Pull request and workflow operations go through the GitHub CLI (gh), which
handles authentication itself. The repository existence probe uses the REST
API directly through requests so that the HTTP status (404 vs 403 rate limit)
is visible.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional

import requests

from manage_prs.config import (
    BOT_REPOSITORY,
    GITHUB_API_URL,
    GITHUB_TOKEN_ENV,
    PROCESS_WORKFLOW,
    REQUEST_TIMEOUT,
    RESTART_EVENT_TYPE,
)
from manage_prs.errors import PreconditionError
from manage_prs.utils import run_command

logger = logging.getLogger(__name__)


@dataclass
class PRRecord:
    """A pull request as observed on the platform."""
    number: int
    state: str  # OPEN, CLOSED or MERGED
    title: str
    closed_by: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.state == "OPEN"

    @property
    def is_merged(self) -> bool:
        return self.state == "MERGED"

    @property
    def is_closed_unmerged(self) -> bool:
        return self.state == "CLOSED"


def _auth_headers() -> Dict[str, str]:
    headers = {"Accept": "application/vnd.github+json"}
    token = os.environ.get(GITHUB_TOKEN_ENV)
    if token:
        headers["Authorization"] = f"token {token}"
    else:
        logger.debug(f"{GITHUB_TOKEN_ENV} not set, using unauthenticated requests")
    return headers


class GitHubClient:
    """
    Thin wrapper around gh and the REST API.

    Every method is a blocking call; nothing is cached, so each lifecycle
    decision sees the platform's current state.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    # ------------------------------------------------------------------
    # identity and repositories
    # ------------------------------------------------------------------

    def current_user(self) -> str:
        _, stdout, _ = run_command(["gh", "api", "user", "-q", ".login"])
        return stdout.strip()

    def repository_exists(self, repo: str) -> bool:
        """
        Check whether owner/name exists.

        Returns:
            True if the repository exists or the check was rate limited,
            False if the platform answered 404

        Raises:
            PreconditionError: On any other status or a network failure
        """
        url = f"{GITHUB_API_URL}/repos/{repo}"
        try:
            response = requests.get(url, headers=_auth_headers(), timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise PreconditionError(f"Could not reach {url}: {e}")

        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        if response.status_code in (403, 429):
            logger.warning(f"⚠ Rate limited while checking {repo} (HTTP {response.status_code}), assuming it exists")
            return True
        raise PreconditionError(f"Unexpected HTTP {response.status_code} while checking {repo}")

    # ------------------------------------------------------------------
    # pull requests
    # ------------------------------------------------------------------

    def find_prs_by_title(self, repo: str, title: str) -> List[PRRecord]:
        """
        Pull requests authored by the current user whose title matches exactly.

        The search is fuzzy, so results are filtered on the exact title and
        each remaining PR is read again for its state and who closed it.
        """
        _, stdout, _ = run_command([
            "gh", "search", "prs", title,
            "--repo", repo,
            "--author", "@me",
            "--match", "title",
            "--json", "number,title,state",
            "--limit", "100",
        ])
        found = json.loads(stdout or "[]")
        records = []
        for pr in found:
            if pr.get("title") != title:
                continue
            records.append(self.get_pr(repo, pr["number"], title))
        records.sort(key=lambda r: r.number)
        return records

    def get_pr(self, repo: str, number: int, title: str = "") -> PRRecord:
        _, stdout, _ = run_command(["gh", "api", f"repos/{repo}/issues/{number}"])
        issue = json.loads(stdout)
        pull = issue.get("pull_request") or {}
        if pull.get("merged_at"):
            state = "MERGED"
        else:
            state = str(issue.get("state", "")).upper()
        closed_by = (issue.get("closed_by") or {}).get("login")
        return PRRecord(
            number=int(issue.get("number", number)),
            state=state,
            title=issue.get("title", title),
            closed_by=closed_by,
        )

    def create_pr(self, repo: str, title: str, body: str, base: str, head: str) -> str:
        """Open a pull request and return its URL."""
        _, stdout, _ = run_command([
            "gh", "pr", "create",
            "--repo", repo,
            "--title", title,
            "--body", body,
            "--base", base,
            "--head", head,
        ], dry_run=self.dry_run)
        return stdout.strip()

    def comment_pr(self, repo: str, number: int, body: str) -> None:
        run_command(
            ["gh", "pr", "comment", str(number), "--repo", repo, "--body", body],
            dry_run=self.dry_run
        )

    def close_pr(self, repo: str, number: int) -> None:
        run_command(["gh", "pr", "close", str(number), "--repo", repo], dry_run=self.dry_run)

    # ------------------------------------------------------------------
    # automation
    # ------------------------------------------------------------------

    def trigger_workflow(self, fields: Dict[str, str], workflow: str = PROCESS_WORKFLOW,
                         repo: str = BOT_REPOSITORY) -> None:
        """Start a workflow_dispatch run with the given input fields."""
        cmd = ["gh", "workflow", "run", workflow, "--repo", repo]
        for name, value in fields.items():
            cmd.extend(["--field", f"{name}={value}"])
        run_command(cmd, dry_run=self.dry_run)

    def dispatch_event(self, payload: Dict[str, str], event_type: str = RESTART_EVENT_TYPE,
                       repo: str = BOT_REPOSITORY) -> None:
        """Fire a repository_dispatch event carrying payload as client_payload."""
        cmd = [
            "gh", "api", f"repos/{repo}/dispatches",
            "--method", "POST",
            "--field", f"event_type={event_type}",
        ]
        for name, value in payload.items():
            cmd.extend(["--field", f"client_payload[{name}]={value}"])
        run_command(cmd, dry_run=self.dry_run)
