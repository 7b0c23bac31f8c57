"""Bundled data files (safety catalog and manufacturer packs)."""
