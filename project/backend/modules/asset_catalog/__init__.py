"""
Asset catalog module.

Snapshot of B-roll folders and clips used by assignment validation and
variant fan-out.
"""

from modules.asset_catalog.catalog import AssetCatalog

__all__ = ["AssetCatalog"]
