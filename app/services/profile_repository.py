"""
Wellspring — Profile repository (persistence collaborator)

Stores one ``PersonalizationProfile`` document per user in PostgreSQL (JSONB)
and the closed-session summaries that feed the session context assembler.

Documents are normalised through ``PersonalizationProfile.model_validate``
on the way out, so older or partial rows are upgraded transparently.  Writes
are last-write-wins; ``revision`` only records how many writes happened.
An optional ``ProfileCache`` fronts reads and is refreshed on every write.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.personalization import UserPersonalization
from app.models.session import SessionSummaryRecord
from app.schemas.profile import SCHEMA_VERSION, PersonalizationProfile, ProfileEnvelope
from app.schemas.session import SessionSummary
from app.services.profile_cache import ProfileCache

logger = structlog.get_logger("wellspring.profile_repository")


class ProfileRepository:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: ProfileCache | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._cache = cache

    # ══════════════════════════════════════════════════════════════════════
    # Profiles
    # ══════════════════════════════════════════════════════════════════════

    async def get_envelope(self, user_id: str) -> ProfileEnvelope | None:
        """Return the stored profile and its revision, or ``None``.

        The cache is consulted first; a database hit populates it.
        """
        if self._cache is not None:
            cached = self._cache.get(user_id)
            if cached is not None:
                revision, profile = cached
                return ProfileEnvelope(user_id=user_id, revision=revision, profile=profile)

        async with self._session_factory() as session:
            row = await session.get(UserPersonalization, user_id)

        if row is None:
            logger.debug("profile_not_found", user_id=user_id)
            return None

        profile = PersonalizationProfile.model_validate(row.document)
        if not profile.user_id:
            profile.user_id = user_id

        if self._cache is not None:
            self._cache.put(user_id, row.revision, profile)
        return ProfileEnvelope(user_id=user_id, revision=row.revision, profile=profile)

    async def get_profile(self, user_id: str) -> PersonalizationProfile | None:
        envelope = await self.get_envelope(user_id)
        return envelope.profile if envelope is not None else None

    async def put_profile(
        self,
        user_id: str,
        profile: PersonalizationProfile,
        now: datetime | None = None,
    ) -> ProfileEnvelope:
        """Upsert ``profile`` for ``user_id`` and bump its revision.

        ``created_at`` and ``last_updated`` are stamped when the document
        does not carry them yet.
        """
        now = now or datetime.now(timezone.utc)
        profile = profile.model_copy(deep=True)
        profile.user_id = user_id
        if profile.created_at is None:
            profile.created_at = now
        if profile.last_updated is None:
            profile.last_updated = now
        document = profile.model_dump(mode="json")

        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(UserPersonalization, user_id, with_for_update=True)
                if row is None:
                    row = UserPersonalization(
                        user_id=user_id,
                        document=document,
                        schema_version=SCHEMA_VERSION,
                        revision=1,
                    )
                    session.add(row)
                else:
                    row.document = document
                    row.schema_version = SCHEMA_VERSION
                    row.revision = row.revision + 1
            revision = row.revision

        if self._cache is not None:
            self._cache.put(user_id, revision, profile)

        logger.info("profile_stored", user_id=user_id, revision=revision)
        return ProfileEnvelope(user_id=user_id, revision=revision, profile=profile)

    # ══════════════════════════════════════════════════════════════════════
    # Session summaries
    # ══════════════════════════════════════════════════════════════════════

    async def list_session_summaries(self, user_id: str, limit: int = 3) -> list[SessionSummary]:
        """Return up to ``limit`` summaries for ``user_id``, newest first."""
        stmt = (
            select(SessionSummaryRecord)
            .where(SessionSummaryRecord.user_id == user_id)
            .order_by(SessionSummaryRecord.created_at.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()
        return [SessionSummary.model_validate(row) for row in rows]

    async def add_session_summary(self, user_id: str, summary: SessionSummary) -> SessionSummary:
        record = SessionSummaryRecord(
            user_id=user_id,
            session_id=summary.session_id,
            summary=summary.summary,
            key_topics=list(summary.key_topics),
            emotional_state=summary.emotional_state,
            user_needs=list(summary.user_needs),
            important_context=summary.important_context,
            perma_insights=dict(summary.perma_insights),
            message_count=summary.message_count,
            completed_at=summary.completed_at or datetime.now(timezone.utc),
        )
        async with self._session_factory() as session:
            async with session.begin():
                session.add(record)
            await session.refresh(record)

        logger.info(
            "session_summary_stored",
            user_id=user_id,
            session_id=summary.session_id,
            topics=len(summary.key_topics),
        )
        return SessionSummary.model_validate(record)
