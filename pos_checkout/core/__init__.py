"""Core checkout and settlement logic."""
