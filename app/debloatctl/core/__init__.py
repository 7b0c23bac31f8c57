"""Core engine components for debloatctl."""
