"""
Core module: error taxonomy and name registry.
"""

from fgbp.core.errors import ConstructionError, FGBPError, InferenceError
from fgbp.core.registry import IDRegistry

__all__ = [
    "FGBPError",
    "ConstructionError",
    "InferenceError",
    "IDRegistry",
]
