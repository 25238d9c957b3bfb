"""
Pytest fixtures shared by all tests.

FakeClient stands in for manage_prs.github.GitHubClient: it keeps PR records
in memory and records every write call, so no test touches gh or the network.
"""

import subprocess
from typing import Dict, List, Optional

import pytest

from manage_prs.github import PRRecord

BOT = "iobroker-bot"
TITLE = "[iobroker-bot] Remove deprecated common.title from io-package.json"


# ============================================================================
# Fake platform client
# ============================================================================


class FakeClient:
    def __init__(self, records: Optional[List[PRRecord]] = None, login: str = BOT, exists: bool = True):
        self.records = list(records or [])
        self.login = login
        self.exists = exists
        self.fail_comment = set()
        self.fail_create = False
        self.fail_trigger = set()
        self.comments = []
        self.closed = []
        self.created = []
        self.triggered = []
        self.dispatched = []
        self.exists_checked = []

    def current_user(self) -> str:
        return self.login

    def repository_exists(self, repo: str) -> bool:
        self.exists_checked.append(repo)
        return self.exists

    def find_prs_by_title(self, repo: str, title: str) -> List[PRRecord]:
        return [r for r in self.records if r.title == title]

    def comment_pr(self, repo: str, number: int, body: str) -> None:
        if number in self.fail_comment:
            raise subprocess.CalledProcessError(1, ["gh", "pr", "comment", str(number)])
        self.comments.append((number, body))

    def close_pr(self, repo: str, number: int) -> None:
        self.closed.append(number)

    def create_pr(self, repo: str, title: str, body: str, base: str, head: str) -> str:
        if self.fail_create:
            raise subprocess.CalledProcessError(1, ["gh", "pr", "create"])
        self.created.append({"repo": repo, "title": title, "body": body, "base": base, "head": head})
        return f"https://github.com/{repo}/pull/{100 + len(self.created)}"

    def trigger_workflow(self, fields: Dict[str, str]) -> None:
        if fields["repository_url"] in self.fail_trigger:
            raise subprocess.CalledProcessError(1, ["gh", "workflow", "run"])
        self.triggered.append(fields)

    def dispatch_event(self, payload: Dict[str, str]) -> None:
        self.dispatched.append(payload)


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


# ============================================================================
# PR record factory
# ============================================================================


@pytest.fixture
def pr_factory():
    """
    Usage:
        pr_factory(1, "OPEN")
        pr_factory(2, "CLOSED", closed_by="someone")
    """
    def make(number: int, state: str, closed_by: Optional[str] = None, title: str = TITLE) -> PRRecord:
        return PRRecord(number=number, state=state, title=title, closed_by=closed_by)
    return make


# ============================================================================
# Registry
# ============================================================================


def registry_entry(owner: str, key: str) -> Dict[str, str]:
    return {"meta": f"https://raw.githubusercontent.com/{owner}/ioBroker.{key}/master/io-package.json"}


@pytest.fixture
def make_registry():
    """
    Usage:
        make_registry("a", "b", owner="acme-labs")
        make_registry(("a", "acme-labs"), ("b", "other"))
    """
    def make(*entries, owner: str = "acme-labs") -> Dict[str, Dict]:
        registry = {"_repoInfo": {"stable": False}}
        for entry in entries:
            key, entry_owner = entry if isinstance(entry, tuple) else (entry, owner)
            registry[key] = registry_entry(entry_owner, key)
        return registry
    return make


# ============================================================================
# Working directories
# ============================================================================


class RepoDir:
    """A repository checkout under tmp_path."""

    def __init__(self, path):
        self.path = path

    def write(self, name: str, text: str):
        target = self.path / name
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        return target

    def read(self, name: str) -> str:
        with open(self.path / name, "r", encoding="utf-8", newline="") as f:
            return f.read()

    def exists(self, name: str) -> bool:
        return (self.path / name).exists()


@pytest.fixture
def repo_dir(tmp_path) -> RepoDir:
    return RepoDir(tmp_path)
