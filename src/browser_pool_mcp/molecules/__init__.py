"""Composite components built from atoms."""
