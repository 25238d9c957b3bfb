"""
Tests for the command line front ends and their exit codes.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from manage_prs.cli import apply_template_command, manage_pr_command, walk_fleet_command
from tests.conftest import BOT, TITLE, FakeClient


@pytest.fixture
def handoff(repo_dir):
    repo_dir.write(".pr-title", TITLE + "\n")
    repo_dir.write(".pr-body", "Body text")
    return repo_dir


# ============================================================================
# apply-template
# ============================================================================


class TestApplyTemplateCommand:
    def test_success(self, repo_dir):
        repo_dir.write(".gitignore", "node_modules\n")
        code = apply_template_command([
            "acme/ioBroker.test", "S0000-blockCommitinfo", "--workdir", str(repo_dir.path), "--skip-repo-check"
        ])
        assert code == 0
        assert repo_dir.exists(".pr-title")
        assert repo_dir.read(".gitignore").endswith(".commitinfo\n")

    def test_repository_check_uses_client(self, repo_dir):
        client = FakeClient(exists=False)
        with patch("manage_prs.cli.GitHubClient", return_value=client):
            code = apply_template_command(["acme/ioBroker.test", "S0000-blockCommitinfo", "--workdir", str(repo_dir.path)])
        assert code == 1
        assert client.exists_checked == ["acme/ioBroker.test"]

    def test_unknown_template(self, repo_dir):
        code = apply_template_command([
            "acme/ioBroker.test", "W9999-doesNotExist", "--workdir", str(repo_dir.path), "--skip-repo-check"
        ])
        assert code == 1

    def test_template_failure(self, repo_dir):
        code = apply_template_command([
            "acme/ioBroker.test", "W1084-removeCommonMain", "--workdir", str(repo_dir.path), "--skip-repo-check"
        ])
        assert code == 1
        assert not repo_dir.exists(".pr-title")


# ============================================================================
# manage-pr
# ============================================================================


class TestManagePrCommand:
    def run(self, client, mode, handoff_dir):
        with patch("manage_prs.cli.GitHubClient", return_value=client):
            return manage_pr_command([
                mode, "acme/ioBroker.test", "main", "bot-branch",
                "--handoff-dir", str(handoff_dir), "--bot-login", BOT
            ])

    def test_creates_pr(self, handoff):
        client = FakeClient()
        assert self.run(client, "skip if existing", handoff.path) == 0
        assert client.created[0]["title"] == TITLE
        assert client.created[0]["body"] == "Body text"

    def test_skip_exits_zero(self, handoff, pr_factory):
        client = FakeClient([pr_factory(1, "OPEN")])
        assert self.run(client, "skip-if-existing", handoff.path) == 0
        assert client.created == []

    def test_invalid_mode(self, handoff):
        client = FakeClient()
        assert self.run(client, "whenever", handoff.path) == 1
        assert client.created == []

    def test_missing_handoff_files(self, repo_dir):
        assert self.run(FakeClient(), "recreate", repo_dir.path) == 1

    def test_create_failure(self, handoff):
        client = FakeClient()
        client.fail_create = True
        assert self.run(client, "recreate", handoff.path) == 1

    def test_close_failure_still_succeeds(self, handoff, pr_factory):
        client = FakeClient([pr_factory(1, "OPEN")])
        client.fail_comment = {1}
        assert self.run(client, "force-creation", handoff.path) == 0
        assert len(client.created) == 1

    def test_search_failure_exits_one(self, handoff):
        client = FakeClient()
        client.find_prs_by_title = MagicMock(
            side_effect=subprocess.CalledProcessError(1, ["gh", "search", "prs"], stderr="HTTP 502")
        )
        assert self.run(client, "recreate", handoff.path) == 1
        assert client.created == []

    def test_missing_gh_exits_one(self, handoff):
        client = FakeClient()
        client.find_prs_by_title = MagicMock(side_effect=FileNotFoundError("gh"))
        assert self.run(client, "recreate", handoff.path) == 1


# ============================================================================
# walk-fleet
# ============================================================================


class TestWalkFleetCommand:
    def test_walk(self, make_registry):
        client = FakeClient()
        with patch("manage_prs.cli.GitHubClient", return_value=client), \
                patch("manage_prs.cli.fetch_registry", return_value=make_registry("a", "b")) as fetch:
            code = walk_fleet_command([
                "--template", "W1035-addTier",
                "--delay", "0",
                "--filter", "acme*",
                "--registry-url", "http://registry.test/sources.json",
                "--pr_mode", "skip if merged",
            ])
        assert code == 0
        fetch.assert_called_once_with("http://registry.test/sources.json")
        assert [f["repository_url"] for f in client.triggered] == [
            "https://github.com/acme-labs/ioBroker.a",
            "https://github.com/acme-labs/ioBroker.b",
        ]
        assert client.triggered[0]["pr_mode"] == "skip-if-merged"

    def test_unknown_template(self):
        with patch("manage_prs.cli.fetch_registry") as fetch:
            assert walk_fleet_command(["--template", "W9999-doesNotExist"]) == 1
        fetch.assert_not_called()

    def test_template_is_required(self):
        with pytest.raises(SystemExit):
            walk_fleet_command([])
