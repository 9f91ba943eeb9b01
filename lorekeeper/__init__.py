"""lorekeeper: knowledge extraction and reconciliation for long-form fiction."""

__version__ = "0.1.0"
