"""CI run observation."""
