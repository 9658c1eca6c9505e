"""
Wellspring — SessionSummaryRecord model (closed chat sessions).
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class SessionSummaryRecord(Base):
    __tablename__ = "session_summaries"
    __table_args__ = (
        Index("ix_session_summaries_user_created", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    session_id: Mapped[str] = mapped_column(String, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    key_topics: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=list, comment="Array of topic strings"
    )
    emotional_state: Mapped[str] = mapped_column(
        String, nullable=False, default="neutral"
    )
    user_needs: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    important_context: Mapped[str] = mapped_column(Text, nullable=False, default="")
    perma_insights: Mapped[dict] = mapped_column(
        JSONB, nullable=False, default=dict, comment="dimension -> insight score"
    )
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<SessionSummaryRecord user={self.user_id!r} session={self.session_id!r}>"
