"""Source-control provider client implementations."""
