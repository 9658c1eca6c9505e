"""Unit tests for the keyword topic classifier."""
import pytest

from app.services.topic_classifier import KeywordTopicClassifier, TopicClassifier


@pytest.fixture
def classifier():
    return KeywordTopicClassifier()


class TestDimensionsFor:

    def test_substring_membership(self, classifier):
        assert classifier.dimensions_for("Comedy / Humor") == ["positive_emotion"]

    def test_topic_in_several_dimensions(self, classifier):
        assert classifier.dimensions_for("skill building") == ["engagement", "accomplishment"]

    def test_unknown_topic_has_no_dimension(self, classifier):
        assert classifier.dimensions_for("quantum chromodynamics") == []

    def test_friendship_is_relationships(self, classifier):
        assert "relationships" in classifier.dimensions_for("friendship")


class TestExtractTopics:

    def test_vocabulary_order(self, classifier):
        text = "Morning meditation and some music while cooking"
        assert classifier.extract_topics(text) == ["cooking", "music", "meditation"]

    def test_word_start_anchor(self, classifier):
        assert "art" in classifier.extract_topics("Artwork from the weekend")
        assert "art" not in classifier.extract_topics("A birthday party")

    def test_themes_follow_activities(self, classifier):
        topics = classifier.extract_topics("A fun adventure reading club")
        assert topics == ["reading", "fun", "adventure"]

    def test_empty_text(self, classifier):
        assert classifier.extract_topics("") == []

    def test_satisfies_protocol(self, classifier):
        assert isinstance(classifier, TopicClassifier)
