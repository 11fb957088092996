"""marginalia: offline, file-by-file code review with diff-anchored comments."""

__version__ = "0.3.0"
