"""shipmatrix: multi-platform release orchestration."""

__version__ = "0.1.0"
