"""Domain modules of the economy engine."""
