"""debloatctl - Safe, reversible Android debloating over ADB."""

__version__ = "0.1.0"
