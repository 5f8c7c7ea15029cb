"""Adapters onto BrickLink and the SQL catalog store."""
