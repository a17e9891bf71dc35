"""
pdbconf — configuration resolution for a PuppetDB-style inventory service.

File: src/pdbconf/__init__.py
Last updated: 2026-10-17

Purpose
- Package root. Defines package-level metadata and import boundaries.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
