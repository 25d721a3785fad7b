"""
ERP Kernel - inventory ledger and monthly closing

A log-derived inventory system with:
- Point-in-time stock computed from an append-only transaction log
- BOM-driven material consumption for weld/paint production
- Batch stock-availability validation before every movement
- Monthly physical-count snapshots that become ledger baselines
"""

__version__ = "0.1.0"
