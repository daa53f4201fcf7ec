"""Bounded contexts of the replay engine."""
