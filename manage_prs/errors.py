"""Exceptions raised by the PR manager tools."""


class ManagePrsError(Exception):
    """Base class for all expected failures."""


# ============================================================================
# TEXT PATCHING
# ============================================================================

class PatchError(ManagePrsError):
    """A single document edit could not be applied. Nothing was written."""


class NotFoundError(PatchError):
    """A path segment is missing or does not have the expected shape."""


class MalformedOutputError(PatchError):
    """The edited document no longer parses."""


class AmbiguousIndentationError(PatchError):
    """Sibling lines disagree on tabs vs spaces."""


# ============================================================================
# ORCHESTRATION
# ============================================================================

class PreconditionError(ManagePrsError):
    """Required input is missing or invalid; no mutation was attempted."""


class TemplateNotFoundError(PreconditionError):
    pass


class PRCreateError(ManagePrsError):
    """Creating the pull request failed."""


class TemplateExecutionError(ManagePrsError):
    """A template's patch logic failed; no pull request may be requested."""
