"""Pure domain layer: value objects and functions with no I/O."""
