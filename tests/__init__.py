"""
Test package for tasklock.

This package contains all tests organized according to pytest testing standards:
- unit/: Unit tests for individual modules
- api/: HTTP API tests
- cli/: Command line tests
- integration/: End-to-end lock lifecycle tests
"""
