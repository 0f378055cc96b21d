"""Shared infrastructure: configuration, logging, errors, cache and settings."""
