"""HTTP transport for the GitHub API."""
