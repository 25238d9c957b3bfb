#!/usr/bin/env python3
"""
Configuration for the PR manager tools

This file contains the settings shared by apply-template, manage-pr and walk-fleet.
Values marked with an environment variable can be overridden without editing the file;
most of them can also be overridden per run on the command line.
"""

import os

# ============================================================================
# CODE PLATFORM
# ============================================================================

# Environment variable holding the API token. Without a token, REST calls are
# made unauthenticated (lower rate limit) instead of failing.
GITHUB_TOKEN_ENV = "GH_TOKEN"

GITHUB_API_URL = "https://api.github.com"

# Timeouts in seconds
REQUEST_TIMEOUT = 30
COMMAND_TIMEOUT = 300  # 5 minute timeout for gh / git calls

# Repository hosting the per-repository workflow and receiving restart dispatches
BOT_REPOSITORY = os.environ.get("MANAGE_PRS_BOT_REPOSITORY", "iobroker-bot-orga/manage-prs")

# Workflow started once per repository by walk-fleet
PROCESS_WORKFLOW = "processRepository.yml"

# repository_dispatch event type used to continue a fleet walk in a fresh run
RESTART_EVENT_TYPE = "process-latest-restart"

# Login of the bot account. Leave unset to ask the platform who we are.
BOT_LOGIN = os.environ.get("MANAGE_PRS_BOT_LOGIN") or None

# ============================================================================
# PULL REQUESTS
# ============================================================================

PR_TITLE_PREFIX = "[iobroker-bot] "

# Hand-off files written by apply-template and read by manage-pr
PR_TITLE_FILE = ".pr-title"
PR_BODY_FILE = ".pr-body"

DEFAULT_PR_MODE = "recreate"

SUPERSEDED_COMMENT = "This PR is being closed because a new PR will be created with updated changes."
REVOKED_COMMENT = "This PR has been revoked and is being closed. The proposed change is no longer needed."

# ============================================================================
# FLEET REGISTRY
# ============================================================================

REGISTRY_URL = os.environ.get(
    "MANAGE_PRS_REGISTRY_URL",
    "http://repo.iobroker.live/sources-dist-latest.json"
)

# Registry keys starting with this prefix are metadata, not repositories
RESERVED_KEY_PREFIX = "_"

# Repository name = prefix + registry key (e.g. "ioBroker." + "admin")
REPOSITORY_NAME_PREFIX = "ioBroker."

# ============================================================================
# PACING
# ============================================================================

DELAY_BETWEEN_REPOS_SECONDS = 120  # 2 minutes between triggered repositories
RESTART_AFTER_HOURS = 3  # restart before the runner's execution limit is hit
DRY_RUN_DELAY_SECONDS = 1

# ============================================================================
# TEXT PATCHING
# ============================================================================

# Indentation used when none can be inferred from the document
DEFAULT_INDENT = "    "

# ============================================================================
# CONFIGURATION NOTES
# ============================================================================
#
# PR modes (manage-pr <mode> ...):
# - "force-creation":   close all open PRs with the same title, then create
# - "recreate":         like force-creation, but skip when a human closed the last PR
# - "skip-if-existing": skip while an open PR with the same title exists
# - "skip-if-closed":   skip when a human closed the last PR
# - "skip-if-merged":   skip when a PR with the same title was merged
# - "revoke":           close all open PRs with the same title, never create
# Spaces or underscores may be used instead of hyphens ("skip if existing").
#
# Restart budget:
# - walk-fleet triggers at most RESTART_AFTER_HOURS * 3600 / delay repositories per run
#   and then dispatches RESTART_EVENT_TYPE with --from set to the next repository.
