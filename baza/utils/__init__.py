"""Small helpers shared across the package: logging setup and timing."""
