"""
Budget Explorer

Hierarchical aggregation and partition engine behind a public
budget-transparency explorer (M52 accounting norm).
"""
__version__ = "0.1.0"
