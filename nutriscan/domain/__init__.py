"""Domain layer: pure business logic, no I/O."""
