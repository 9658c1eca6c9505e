"""
Wellspring — UserPersonalization model (one profile document per user).
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class UserPersonalization(Base):
    __tablename__ = "user_personalization"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    document: Mapped[dict] = mapped_column(
        JSONB, nullable=False, comment="PersonalizationProfile, snake_case JSON"
    )
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False)
    revision: Mapped[int] = mapped_column(
        Integer, default=1, nullable=False, comment="Bumped on every write"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<UserPersonalization user={self.user_id!r} "
            f"rev={self.revision} v={self.schema_version}>"
        )
