"""Atomic building blocks: logging, errors, types and configuration."""
