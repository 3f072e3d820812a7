# arena/models/document.py
from sqlalchemy import JSON, Column, DateTime, Index, Integer, String

from arena.database import Base


class Document(Base):
    """One JSON document of a named collection (users, challenges, teams, applications)."""

    __tablename__ = "documents"

    collection = Column(String(32), primary_key=True)
    id = Column(String(64), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    # bumped on every write; compared by conditional updates
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_documents_collection_created", "collection", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Document {self.collection}/{self.id} v{self.version}>"
