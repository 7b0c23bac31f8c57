"""Safety classification for debloatctl.

This module exports the catalog models and the classifier.
"""

from debloatctl.classifier.catalog import (
    CatalogEntry,
    SafetyCatalog,
    UserOverride,
    load_catalog,
    load_oem_pack,
    load_overrides,
    save_overrides,
)
from debloatctl.classifier.classifier import Classification, SafetyClassifier

__all__ = [
    "CatalogEntry",
    "Classification",
    "SafetyCatalog",
    "SafetyClassifier",
    "UserOverride",
    "load_catalog",
    "load_oem_pack",
    "load_overrides",
    "save_overrides",
]
