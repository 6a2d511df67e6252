"""Atomic commit construction."""
