"""Command line interface for tasklock."""
