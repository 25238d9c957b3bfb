"""Pull request automation for a fleet of adapter repositories."""

__version__ = "1.0.0"
