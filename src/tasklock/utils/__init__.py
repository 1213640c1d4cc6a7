"""Filesystem and logging helpers for tasklock."""
