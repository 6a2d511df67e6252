"""Manifest/backend reconciliation."""
