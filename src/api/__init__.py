"""Public facade: session state and user operations."""
