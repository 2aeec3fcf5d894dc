"""Blueprint packages."""
