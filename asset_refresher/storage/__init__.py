"""
Storage Layer.

This package handles everything that touches the local filesystem: promoting
downloads into the canonical asset path and persisting the configuration file.
"""

from .config_manager import ConfigManager
from .promotion import file_base_name, promote, purge_siblings, swap_into_place

__all__ = [
    "ConfigManager",
    "file_base_name",
    "promote",
    "purge_siblings",
    "swap_into_place",
]
