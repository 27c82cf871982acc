"""Request processing built on the pool managers."""
