"""
Feature modules for the CrateMatch backend.

Each module keeps its own models.py and exceptions.py; modules with state
also carry interfaces.py (Protocols) and service.py, and those that expose
HTTP endpoints carry routes.py.

Modules communicate through interfaces, not concrete implementations.
"""
