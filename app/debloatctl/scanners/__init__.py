"""Package inventory for debloatctl.

This module exports the inventory that snapshots device packages.
"""

from debloatctl.scanners.inventory import PackageInventory

__all__ = ["PackageInventory"]
