"""Shared utilities: logging, numeric helpers and hashing."""
