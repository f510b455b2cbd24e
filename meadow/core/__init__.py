"""Infrastructure layer: configuration, logging, database, clock, sweeps."""
