"""HTTP API for tasklock."""
