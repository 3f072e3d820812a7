from arena.models.document import Document

__all__ = ["Document"]
