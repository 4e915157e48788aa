"""
fgbp/core/errors.py

Error taxonomy for graph construction and inference.

- ConstructionError: misuse of the construction API (fatal, raised immediately)
- InferenceError: internal failures during inference (fatal, never retried)

Numeric anomalies are not errors; they are logged and recorded in
InferenceDiagnostics.
"""

from __future__ import annotations


class FGBPError(Exception):
    """Base class for all fgbp errors."""


class ConstructionError(FGBPError, ValueError):
    """Raised when a factor graph is built or queried incorrectly."""


class InferenceError(FGBPError, RuntimeError):
    """Raised when inference cannot proceed on a built graph."""
