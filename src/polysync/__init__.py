"""PolySync: selection-scoped content transforms and persistence for policy documents."""

from .session import ChatOutcome, EditorSession, TransformOutcome

__version__ = "0.1.0"

__all__ = ["ChatOutcome", "EditorSession", "TransformOutcome", "__version__"]
