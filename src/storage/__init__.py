"""Asset directory backends."""
