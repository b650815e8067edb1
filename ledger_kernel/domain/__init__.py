"""Pure domain layer: value objects, clock, sign convention. No I/O."""
