"""Shared utilities for coinlens."""
