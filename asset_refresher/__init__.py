"""
asset-refresher: keeps a single remote asset available locally and fresh.
"""

__version__ = "1.0.0"
