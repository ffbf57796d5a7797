"""Editor package containing document models, selection capture, and transforms."""

from . import document_model, selection_tracker, transforms

__all__ = ["document_model", "selection_tracker", "transforms"]
