"""Test package for mailparts.

What:
  Marks ``tests`` as a package so the top-level ``conftest`` is imported as
  ``tests.conftest`` and never clashes with ``tests/unit/conftest.py``.

Invariants & Safety:
  - Importing this package has no side effects; path setup lives in
    ``tests/conftest.py``.
"""
