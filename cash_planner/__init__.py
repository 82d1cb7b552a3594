"""Cash Planner: recurring transaction planning backend."""

__version__ = "0.1.0"
