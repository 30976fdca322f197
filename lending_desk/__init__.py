"""Lending Desk - Core Application Package

This package contains the core application modules including:
- Record models (book.py, member.py, loan.py)
- Flat-file persistence (store.py)
- Catalog, lending and reporting logic (catalog.py, lending.py, reports.py)
- The owning library context (library.py)
- CLI interface (main.py)
"""

__version__ = "1.0.0"
