"""
Utility helpers shared across layers.
"""

from .structured_logger import RefreshLogger, StructuredLogger, create_structured_logger

__all__ = ["RefreshLogger", "StructuredLogger", "create_structured_logger"]
