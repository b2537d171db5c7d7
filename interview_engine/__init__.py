"""Interview scheduling and evaluation coordination engine."""

__version__ = "1.0.0"
