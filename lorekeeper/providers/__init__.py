"""Concrete adapters for lorekeeper's interfaces."""
