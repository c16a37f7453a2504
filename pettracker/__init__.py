"""
Local-first sync engine for pet tracker records.
"""

__version__ = "0.1.0"
