"""
Supply Kernel - Inventory Ledger & Stock-State Engine

A ledger of consumable medical supplies with:
- Batch-level stock tracking with non-negative quantity guarantees
- Pure stock classification (in stock / low / out / expiring soon)
- Faceted material listing and dashboard aggregates
- Permission-guarded mutations
- Append-only data log of every change
"""

__version__ = "0.1.0"
