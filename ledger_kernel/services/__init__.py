"""Kernel services: flush-only writers.  The caller owns the transaction."""
