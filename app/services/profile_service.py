"""
Wellspring — Personalization Profile Builder

Implements the assessment-to-profile pipeline:
  1. Resolve the type code and happiness vector (``ScoreService``)
  2. Extract weighted topics from answers
  3. Map topics onto wellness dimensions
  4. Rank primary interests from every preference source
  5. Infer topics to avoid
  6. Infer persona levels (challenge, emotional support, style, social)
  7. Derive service personalization
  8. Compile the ``PersonalizationProfile`` document

The builder is deterministic and performs no I/O.  Persistence is the
job of ``ProfileRepository``; the builder only returns the document.
"""

from __future__ import annotations

from datetime import datetime

import structlog

from app.schemas.assessment import DIMENSIONS, Answers, ScoreVector
from app.schemas.profile import (
    ChatPersona,
    ComputedFields,
    ContentPreferences,
    DimensionScores,
    EngagementStyle,
    PersonalInfo,
    PersonalizationProfile,
    PreferredTopic,
    ServicePersonalization,
    WellnessProfile,
)
from app.services.score_service import ScoreService
from app.services.topic_classifier import KeywordTopicClassifier, TopicClassifier
from app.utils import answers as ans

logger = structlog.get_logger("wellspring.profile_service")


class ProfileService:
    """Builds the initial personalization profile from assessment answers.

    All weights, word lists and thresholds are exposed as class-level
    attributes so they can be introspected or overridden in tests.
    """

    # ── Topic extraction ──────────────────────────────────────────────────

    CONTENT_PREFERENCE_WEIGHT: float = 3.0
    DRIVER_WEIGHT: float = 3.0
    FREE_TEXT_WEIGHT: float = 2.0
    FREE_TEXT_KEYS: tuple[str, ...] = ("pe_happy_events", "e_flow_activity", "a_proud_achievement")
    STOPWORDS: frozenset[str] = frozenset({"the", "and", "for", "with", "that", "this"})
    MIN_TOPIC_LENGTH: int = 3
    MAX_TOPIC_SCORES: int = 20

    # Content-preference options that belong to each dimension.
    DIMENSION_OPTIONS: dict[str, list[str]] = {
        "positive_emotion": [
            "Comedy / Humor", "Feel-good Content", "Music / Entertainment", "Animals / Nature",
        ],
        "engagement": [
            "Gaming / Interactive", "DIY / Creative Projects", "Learning / Education",
            "Technology / Science",
        ],
        "relationships": ["Relationships / Social", "Family / Parenting", "Community / Events"],
        "meaning": [
            "Inspiration / Growth", "Mindfulness / Spirituality", "Philosophy / Deep Topics",
        ],
        "accomplishment": ["Self-Improvement", "Career / Success", "Health / Wellness"],
    }

    # ── Primary interests ─────────────────────────────────────────────────

    EXPLICIT_SELECTION_WEIGHT: float = 10.0
    PRIMARY_DRIVER_WEIGHT: float = 15.0
    FLOW_ACTIVITY_WEIGHT: float = 12.0
    REPEATED_MENTION_MULTIPLIER: float = 3.0
    DIMENSION_MEMBERSHIP_WEIGHT: dict[str, float] = {
        "positive_emotion": 8.0,
        "engagement": 8.0,
    }
    DEFAULT_MEMBERSHIP_WEIGHT: float = 6.0
    MEMBERSHIP_TOP_N: int = 3
    MAX_PRIMARY_INTERESTS: int = 8

    # ── Avoid topics ──────────────────────────────────────────────────────

    MAX_AVOID_TOPICS: int = 5
    LOW_DIMENSION_THRESHOLD: int = 2
    HIGH_STRESS_THRESHOLD: int = 8
    LOW_DIMENSION_AVOIDS: dict[str, list[str]] = {
        "positive_emotion": ["negative news", "conflict content", "stress-inducing"],
        "relationships": ["social pressure", "competitive social"],
        "meaning": ["superficial content", "mindless entertainment"],
    }
    HIGH_STRESS_AVOIDS: list[str] = [
        "high-pressure activities", "time-intensive", "perfectionism-focused",
    ]
    TYPE_LETTER_AVOIDS: dict[str, list[str]] = {
        "I": ["large group activities", "public speaking"],
        "S": ["abstract theory", "highly conceptual"],
    }
    AVOID_CANDIDATE_OPTIONS: list[str] = [
        "Comedy / Humor", "Feel-good Content", "Music / Entertainment", "Animals / Nature",
        "Gaming / Interactive", "Learning / Education", "Technology / Science",
        "Relationships / Social", "Family / Parenting", "Community / Events",
        "Philosophy / Deep Topics", "News / Current Events",
    ]
    # The user counts as selective when at most (total - margin) were picked.
    SELECTIVE_MARGIN: int = 6
    UNSELECTED_AVOID_COUNT: int = 3

    # ── Persona levels ────────────────────────────────────────────────────

    CHALLENGE_HIGH_AT: int = 4
    CHALLENGE_LOW_AT: int = 0
    SUPPORT_HIGH_AT: int = 4
    SUPPORT_MEDIUM_AT: int = 2
    ENGAGEMENT_HIGH_AT: float = 7.0
    ENGAGEMENT_MEDIUM_AT: float = 4.0

    # ── Service personalization ───────────────────────────────────────────

    FOCUS_SERVICE_TYPES: dict[str, list[str]] = {
        "positive_emotion": ["mood-boosting", "gratitude-practice", "joy-activities", "stress-relief"],
        "engagement": ["skill-building", "creative-workshops", "learning-platforms", "flow-activities"],
        "relationships": [
            "social-connection", "communication-training", "relationship-coaching",
            "community-building",
        ],
        "meaning": ["purpose-discovery", "values-clarification", "spiritual-growth", "volunteer-matching"],
        "accomplishment": ["goal-setting", "habit-tracking", "achievement-coaching", "productivity-tools"],
    }
    LOW_OVERALL_SERVICE_TYPES: list[str] = [
        "mental-health-support", "wellness-coaching", "mindfulness-training",
    ]
    LOW_OVERALL_THRESHOLD: float = 5.0
    TYPE_LETTER_SERVICE_TYPES: dict[str, list[str]] = {
        "I": ["self-reflection-tools", "personal-journaling"],
        "E": ["group-activities", "social-challenges"],
        "N": ["innovation-workshops", "future-planning"],
        "S": ["practical-skills", "hands-on-activities"],
        "T": ["data-driven-insights", "logical-frameworks"],
        "F": ["emotional-intelligence", "empathy-building"],
    }
    FOCUS_WELLNESS_GOALS: dict[str, list[str]] = {
        "positive_emotion": ["increase daily positive emotions", "build gratitude habits"],
        "engagement": ["find flow activities", "develop new skills"],
        "relationships": ["strengthen social connections", "improve communication"],
        "meaning": ["clarify personal values", "discover life purpose"],
        "accomplishment": ["set achievable goals", "build consistent habits"],
    }
    MAX_SERVICE_TYPES: int = 8
    MAX_WELLNESS_GOALS: int = 6
    MAX_AVOIDANCE_PATTERNS: int = 4

    def __init__(
        self,
        score_service: ScoreService | None = None,
        classifier: TopicClassifier | None = None,
    ) -> None:
        self._scores = score_service or ScoreService()
        self._classifier = classifier or KeywordTopicClassifier()

    # ══════════════════════════════════════════════════════════════════════
    # 1. build_profile: full pipeline entry point
    # ══════════════════════════════════════════════════════════════════════

    def build_profile(
        self,
        answers: Answers,
        type_code: str | None = None,
        scores: ScoreVector | None = None,
        user_id: str = "",
        now: datetime | None = None,
    ) -> PersonalizationProfile:
        """Run the full pipeline and return the compiled profile document.

        Parameters
        ----------
        answers:
            Raw assessment answers keyed by question id, e.g.::

                {
                    "current_mood": "8",
                    "content_preferences": ["Comedy / Humor"],
                    "happiness_driver": "Learning something new",
                    ...
                }

        type_code / scores:
            Already-derived seeds.  When omitted they are derived from
            ``answers`` with the injected ``ScoreService``.
        user_id:
            Owner of the document (stored on it verbatim).
        now:
            Creation timestamp.  Left unset by default so the builder stays
            a pure function of its inputs; the repository stamps documents
            it persists.

        Returns
        -------
        PersonalizationProfile
            A complete document with every field populated.
        """
        log = logger.bind(user_id=user_id)

        type_code = (type_code or self._scores.derive_type_code(answers)).upper()
        scores = scores or self._scores.derive_score_vector(answers)
        score_map = scores.as_dict()
        log.info("profile_build_start", type_code=type_code, overall=scores.overall)

        # Steps 2-3: topics and their dimensions
        topics, topic_scores = self.extract_topics(answers)
        mapped = self.map_topics_to_dimensions(topics, topic_scores)
        dimension_map = self._build_dimension_topic_map(answers, mapped)

        # Step 4: primary interests
        interests = self.rank_primary_interests(answers, topic_scores, dimension_map)

        # Step 5: avoid topics
        avoid = self.derive_avoid_topics(answers, scores, interests, type_code)
        log.info("profile_topics_derived", n_topics=len(topics), interests=interests, avoid=avoid)

        # Step 6: persona levels
        focus_areas, strengths = rank_dimensions(score_map)
        challenge = self.derive_challenge_level(answers, type_code, scores)
        support = self.derive_emotional_support(answers, scores)
        style = self.derive_communication_style(type_code)
        social = self.derive_social_preference(answers)

        # Step 7: service personalization
        services = self.derive_service_personalization(
            answers, type_code, scores, focus_areas, challenge,
        )

        # Step 8: compile
        profile = PersonalizationProfile(
            user_id=user_id,
            chat_persona=ChatPersona(
                type_code=type_code,
                communication_style=style,
                preferred_topics=self.derive_preferred_topics(
                    dimension_map, topic_scores, focus_areas,
                ),
                emotional_support=support,
            ),
            content_preferences=ContentPreferences(
                dimension_topic_map=dimension_map,
                primary_interests=interests,
                avoid_topics=avoid,
                topic_scores=_top_scores(topic_scores, self.MAX_TOPIC_SCORES),
            ),
            wellness_profile=WellnessProfile(
                baseline_scores=scores,
                current_scores=DimensionScores.from_vector(scores),
                focus_areas=focus_areas,
                strengths=strengths,
                challenge_level=challenge,
                social_preference=social,
            ),
            service_personalization=services,
            computed=ComputedFields(
                overall_happiness=round(scores.overall, 2),
                primary_dimension=strengths[0],
                engagement_level=self.engagement_level(scores.engagement),
                last_engagement_type="assessment",
            ),
            personal_info=PersonalInfo(
                nickname=ans.text(answers, "nickname"),
                happy_events=ans.text(answers, "pe_happy_events"),
                flow_activity=ans.text(answers, "e_flow_activity"),
                proud_achievement=ans.text(answers, "a_proud_achievement"),
            ),
            emotion_baseline=ans.number(answers, "current_mood", 5.0),
            created_at=now,
            last_updated=now,
        )
        log.info(
            "profile_built",
            focus_areas=focus_areas,
            strengths=strengths,
            challenge_level=challenge,
            emotional_support=support,
        )
        return profile

    # ══════════════════════════════════════════════════════════════════════
    # 2. extract_topics
    # ══════════════════════════════════════════════════════════════════════

    def extract_topics(self, answers: Answers) -> tuple[set[str], dict[str, float]]:
        """Collect weighted topic candidates from the answers.

        Sources and weights:
          - each selected content preference: ``CONTENT_PREFERENCE_WEIGHT``
          - the primary happiness driver: ``DRIVER_WEIGHT``
          - each vocabulary keyword found in a free-text answer:
            ``FREE_TEXT_WEIGHT`` per answer it appears in

        Topics are lower-cased and stripped; stopwords and topics shorter
        than ``MIN_TOPIC_LENGTH`` are dropped.  A topic's score is the sum
        of every contributing weight.

        Returns
        -------
        tuple[set[str], dict[str, float]]
            The topic set and the per-topic aggregate weight.
        """
        scores: dict[str, float] = {}

        def _add(raw: str, weight: float) -> None:
            topic = raw.strip().lower()
            if len(topic) < self.MIN_TOPIC_LENGTH or topic in self.STOPWORDS:
                return
            scores[topic] = scores.get(topic, 0.0) + weight

        for option in ans.items(answers, "content_preferences"):
            _add(option, self.CONTENT_PREFERENCE_WEIGHT)

        driver = ans.text(answers, "happiness_driver")
        if driver:
            _add(driver, self.DRIVER_WEIGHT)

        for key in self.FREE_TEXT_KEYS:
            for keyword in self._classifier.extract_topics(ans.text(answers, key)):
                _add(keyword, self.FREE_TEXT_WEIGHT)

        return set(scores), scores

    # ══════════════════════════════════════════════════════════════════════
    # 3. map_topics_to_dimensions
    # ══════════════════════════════════════════════════════════════════════

    def map_topics_to_dimensions(
        self,
        topics: set[str],
        scores: dict[str, float],
    ) -> dict[str, list[str]]:
        """Assign each topic to every dimension whose keyword set it matches.

        Each dimension's list is sorted by descending topic weight (ties by
        topic name so the result does not depend on set iteration order).
        """
        mapped: dict[str, list[str]] = {d: [] for d in DIMENSIONS}
        for topic in topics:
            for dim in self._classifier.dimensions_for(topic):
                if dim in mapped:
                    mapped[dim].append(topic)
        for dim in mapped:
            mapped[dim].sort(key=lambda t: (-scores.get(t, 0.0), t))
        return mapped

    def _build_dimension_topic_map(
        self,
        answers: Answers,
        mapped: dict[str, list[str]],
    ) -> dict[str, list[str]]:
        """Selected dimension options first, then classifier-mapped topics."""
        selected = {s.lower() for s in ans.items(answers, "content_preferences")}
        result: dict[str, list[str]] = {}
        for dim in DIMENSIONS:
            topics = [
                opt.lower() for opt in self.DIMENSION_OPTIONS.get(dim, [])
                if opt.lower() in selected
            ]
            topics.extend(mapped.get(dim, []))
            result[dim] = list(dict.fromkeys(topics))
        return result

    # ══════════════════════════════════════════════════════════════════════
    # 4. rank_primary_interests
    # ══════════════════════════════════════════════════════════════════════

    def rank_primary_interests(
        self,
        answers: Answers,
        topic_scores: dict[str, float],
        dimension_map: dict[str, list[str]],
    ) -> list[str]:
        """Rank interests by summing source-specific weights per topic.

        Explicit selections, the stated primary driver, flow-activity
        keywords and repeated free-text mentions all outweigh topics that
        only reached the pool through dimension membership.  Topics are
        de-duplicated case-insensitively; at most
        ``MAX_PRIMARY_INTERESTS`` are returned.
        """
        pool: dict[str, float] = {}

        def _add(raw: str, weight: float) -> None:
            key = raw.strip().lower()
            if key:
                pool[key] = pool.get(key, 0.0) + weight

        for option in ans.items(answers, "content_preferences"):
            _add(option, self.EXPLICIT_SELECTION_WEIGHT)

        driver = ans.text(answers, "happiness_driver")
        if driver:
            _add(driver, self.PRIMARY_DRIVER_WEIGHT)

        for keyword in self._classifier.extract_topics(ans.text(answers, "e_flow_activity")):
            _add(keyword, self.FLOW_ACTIVITY_WEIGHT)

        for topic, score in topic_scores.items():
            if score > 1:
                _add(topic, score * self.REPEATED_MENTION_MULTIPLIER)

        for dim, topics in dimension_map.items():
            base = self.DIMENSION_MEMBERSHIP_WEIGHT.get(dim, self.DEFAULT_MEMBERSHIP_WEIGHT)
            for index, topic in enumerate(topics[: self.MEMBERSHIP_TOP_N]):
                _add(topic, base + (self.MEMBERSHIP_TOP_N - index))

        ranked = sorted(pool.items(), key=lambda kv: kv[1], reverse=True)
        return [topic for topic, _ in ranked[: self.MAX_PRIMARY_INTERESTS]]

    # ══════════════════════════════════════════════════════════════════════
    # 5. derive_avoid_topics
    # ══════════════════════════════════════════════════════════════════════

    def derive_avoid_topics(
        self,
        answers: Answers,
        scores: ScoreVector,
        interests: list[str],
        type_code: str,
    ) -> list[str]:
        """Infer up to ``MAX_AVOID_TOPICS`` topics to steer away from.

        Candidates, in priority order:
          1. fixed lists for any dimension scoring at or below
             ``LOW_DIMENSION_THRESHOLD``
          2. high-stress list when stress is at or above
             ``HIGH_STRESS_THRESHOLD``
          3. fixed lists for type-code letters
          4. content options the user did not pick, but only when the user
             was selective (picked at most ``total - SELECTIVE_MARGIN``)

        A topic already among the primary interests is never avoided.
        """
        candidates: list[str] = []
        score_map = scores.as_dict()

        for dim, topics in self.LOW_DIMENSION_AVOIDS.items():
            if score_map.get(dim, 5) <= self.LOW_DIMENSION_THRESHOLD:
                candidates.extend(topics)

        if ans.number(answers, "stress_burnout", 5.0) >= self.HIGH_STRESS_THRESHOLD:
            candidates.extend(self.HIGH_STRESS_AVOIDS)

        for letter, topics in self.TYPE_LETTER_AVOIDS.items():
            if letter in type_code:
                candidates.extend(topics)

        chosen = {s.lower() for s in ans.items(answers, "content_preferences")}
        chosen.update(i.lower() for i in interests)
        not_selected = [
            opt.lower() for opt in self.AVOID_CANDIDATE_OPTIONS if opt.lower() not in chosen
        ]
        total = len(self.AVOID_CANDIDATE_OPTIONS)
        if total - len(not_selected) <= total - self.SELECTIVE_MARGIN:
            candidates.extend(not_selected[: self.UNSELECTED_AVOID_COUNT])

        interest_keys = {i.lower() for i in interests}
        avoid = [c for c in dict.fromkeys(c.lower() for c in candidates) if c not in interest_keys]
        return avoid[: self.MAX_AVOID_TOPICS]

    # ══════════════════════════════════════════════════════════════════════
    # 6. Persona levels
    # ══════════════════════════════════════════════════════════════════════

    def derive_challenge_level(
        self,
        answers: Answers,
        type_code: str,
        scores: ScoreVector,
    ) -> str:
        """Additive signal total: >= 4 is high, <= 0 is low, else medium."""
        total = 0
        if ans.text(answers, "flow_challenge").lower() == "yes":
            total += 3

        if "NT" in type_code:
            total += 2
        elif "ST" in type_code:
            total += 1
        if "F" in type_code:
            total -= 1
        if "P" in type_code:
            total += 1

        if scores.engagement >= 7:
            total += 2
        elif scores.engagement <= 4:
            total -= 2
        if scores.accomplishment >= 7:
            total += 1
        elif scores.accomplishment <= 4:
            total -= 1

        stress = ans.number(answers, "stress_burnout", 5.0)
        if stress >= 8:
            total -= 2
        elif stress <= 3:
            total += 1

        if ans.contains(answers, "happiness_driver", "learning"):
            total += 2
        elif ans.contains(answers, "happiness_driver", "creating"):
            total += 1
        elif ans.contains(answers, "happiness_driver", "relaxing"):
            total -= 1

        mood = ans.number(answers, "current_mood", 5.0)
        if mood >= 8:
            total += 1
        elif mood <= 3:
            total -= 1

        if total >= self.CHALLENGE_HIGH_AT:
            return "high"
        if total <= self.CHALLENGE_LOW_AT:
            return "low"
        return "medium"

    def derive_emotional_support(self, answers: Answers, scores: ScoreVector) -> str:
        """Additive need total: >= 4 is high, >= 2 is medium, else low."""
        total = 0
        if scores.positive_emotion <= 4:
            total += 2
        if ans.number(answers, "current_mood", 5.0) <= 4:
            total += 2
        if ans.number(answers, "stress_burnout", 5.0) >= 7:
            total += 2
        if sum(1 for v in scores.as_dict().values() if v <= 4) >= 2:
            total += 1

        if total >= self.SUPPORT_HIGH_AT:
            return "high"
        if total >= self.SUPPORT_MEDIUM_AT:
            return "medium"
        return "low"

    @staticmethod
    def derive_communication_style(type_code: str) -> str:
        thinking = "T" in type_code
        extravert = "E" in type_code
        if thinking:
            return "direct" if extravert else "analytical"
        return "supportive" if extravert else "creative"

    @staticmethod
    def derive_social_preference(answers: Answers) -> str:
        if ans.contains(answers, "coping_preference", "talk"):
            return "social"
        if ans.contains(answers, "coping_preference", "alone"):
            return "solo"
        return "mixed"

    def engagement_level(self, value: float) -> str:
        if value >= self.ENGAGEMENT_HIGH_AT:
            return "high"
        if value >= self.ENGAGEMENT_MEDIUM_AT:
            return "medium"
        return "low"

    def derive_preferred_topics(
        self,
        dimension_map: dict[str, list[str]],
        topic_scores: dict[str, float],
        focus_areas: list[str],
    ) -> list[PreferredTopic]:
        """Score every mapped topic, doubling those in a focus dimension.

        A topic listed under several dimensions keeps its first dimension.
        """
        seen: set[str] = set()
        preferred: list[PreferredTopic] = []
        for dim in DIMENSIONS:
            for topic in dimension_map.get(dim, []):
                key = topic.lower()
                if key in seen:
                    continue
                seen.add(key)
                score = topic_scores.get(key, 1.0)
                if dim in focus_areas:
                    score *= 2
                preferred.append(PreferredTopic(topic=key, dimension=dim, score=score))
        preferred.sort(key=lambda p: p.score, reverse=True)
        return preferred

    # ══════════════════════════════════════════════════════════════════════
    # 7. derive_service_personalization
    # ══════════════════════════════════════════════════════════════════════

    def derive_service_personalization(
        self,
        answers: Answers,
        type_code: str,
        scores: ScoreVector,
        focus_areas: list[str],
        challenge_level: str,
    ) -> ServicePersonalization:
        """Recommendation metadata computed once from the assessment."""
        coping = ans.text(answers, "coping_preference").lower()

        service_types: list[str] = []
        for dim in focus_areas:
            service_types.extend(self.FOCUS_SERVICE_TYPES.get(dim, []))
        if scores.overall <= self.LOW_OVERALL_THRESHOLD:
            service_types.extend(self.LOW_OVERALL_SERVICE_TYPES)
        for letter in type_code:
            service_types.extend(self.TYPE_LETTER_SERVICE_TYPES.get(letter, []))

        if "alone" in coping or "I" in type_code:
            delivery = "self-directed"
        elif "someone" in coping or "E" in type_code:
            delivery = "human-guided"
        else:
            delivery = "hybrid"

        if challenge_level == "high" and scores.engagement >= 7:
            session_length = "long"
        elif challenge_level == "low" or scores.positive_emotion <= 4:
            session_length = "short"
        else:
            session_length = "medium"

        stress = ans.number(answers, "stress_burnout", 5.0)
        if stress >= 8 or scores.positive_emotion <= 4:
            frequency = "daily"
        elif len(focus_areas) >= 3:
            frequency = "weekly"
        else:
            frequency = "as-needed"

        goals: list[str] = []
        for dim in focus_areas:
            goals.extend(self.FOCUS_WELLNESS_GOALS.get(dim, []))

        avoidance: list[str] = []
        if stress >= 8:
            avoidance.extend(["high-intensity", "time-pressured", "performance-focused"])
        if scores.positive_emotion <= 3:
            avoidance.extend(["challenging-feedback", "competitive", "criticism-heavy"])
        if "I" in type_code:
            avoidance.extend(["large-group-required", "public-presentation"])

        return ServicePersonalization(
            recommended_service_types=list(dict.fromkeys(service_types))[: self.MAX_SERVICE_TYPES],
            delivery_method=delivery,
            session_length=session_length,
            frequency=frequency,
            cost_sensitivity="moderate",
            wellness_goals=list(dict.fromkeys(goals))[: self.MAX_WELLNESS_GOALS],
            avoidance_patterns=list(dict.fromkeys(avoidance))[: self.MAX_AVOIDANCE_PATTERNS],
            engagement_style=self._derive_engagement_style(answers, type_code),
        )

    @staticmethod
    def _derive_engagement_style(answers: Answers, type_code: str) -> EngagementStyle:
        scenario = ans.text(answers, "usage_scenario").lower()
        if "before bed" in scenario:
            preferred_time = "evening"
        elif "lunch break" in scenario:
            preferred_time = "afternoon"
        elif "morning" in scenario:
            preferred_time = "morning"
        else:
            preferred_time = "flexible"

        reward = ans.text(answers, "reward_preference").lower()
        if "badge" in reward:
            motivation = "gamified"
        elif "friends" in reward:
            motivation = "community"
        elif "J" in type_code:
            motivation = "guided"
        else:
            motivation = "self-driven"

        selected = " ".join(ans.items(answers, "content_preferences")).lower()
        if "music" in selected:
            learning = "auditory"
        elif "diy" in selected or "interactive" in selected:
            learning = "kinesthetic"
        elif "N" in type_code:
            learning = "visual"
        else:
            learning = "mixed"

        return EngagementStyle(
            preferred_time=preferred_time,
            motivation_type=motivation,
            learning_preference=learning,
        )


# ──────────────────────────────────────────────────────────────────────────────
# Module-level helpers (shared with the interaction learner)
# ──────────────────────────────────────────────────────────────────────────────

def rank_dimensions(scores: dict[str, float]) -> tuple[list[str], list[str]]:
    """Return ``(focus_areas, strengths)``: the 2 lowest and 2 highest dimensions.

    Both come from a single ascending sort (ties in canonical dimension
    order), so the two lists are always disjoint.
    """
    ordered = sorted(DIMENSIONS, key=lambda d: scores.get(d, 5.0))
    return ordered[:2], list(reversed(ordered[-2:]))


def _top_scores(scores: dict[str, float], limit: int) -> dict[str, float]:
    ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)[:limit]
    return {topic: max(0.0, min(10.0, score)) for topic, score in ranked}
