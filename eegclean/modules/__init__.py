"""Processing modules."""
