"""
The `packaging` sub-package contains modules related to the construction and
verification of gem archives.

This includes:
- Orchestrating a build: validation, archive writing and optional signing.
- Reading archives back and verifying their signatures against a trust store.
"""
