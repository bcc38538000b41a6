"""API module."""
