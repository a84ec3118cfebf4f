"""Weekly GitHub activity snapshots per contributor."""

__version__ = "0.1.0"
