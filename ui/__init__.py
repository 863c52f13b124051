# ui/__init__.py
"""Interactive text user interface."""
