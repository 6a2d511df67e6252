"""Manifest document access."""
