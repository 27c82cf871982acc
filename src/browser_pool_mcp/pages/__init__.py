"""Application-level composition of the pool components."""
