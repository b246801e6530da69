"""
Inventory Kernel

Lowest layer of the inventory analytics engine:
- Structured JSON logging
- Typed exceptions with machine-readable codes
- Immutable domain records read from snapshots
- Injectable clock
- SQLAlchemy persistence for acknowledged alert ids
"""

__version__ = "0.1.0"
