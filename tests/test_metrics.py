from datetime import timedelta

import pytest
from pydantic import ValidationError

from skillhub.core.constants import SENTIMENT_HISTORY_LIMIT
from skillhub.models.metrics import FlagReason, SentimentRecord
from skillhub.models.profile import Profile
from skillhub.services.flagging import FlaggingEngine
from skillhub.services.metrics import MetricsService
from skillhub.services.ranking import RankingEngine
from skillhub.services.sentiment import SentimentAnalyzer
from skillhub.services.state import EngagementState
from skillhub.services.view_tracker import ViewTracker

HOSTILE_BIO = "terrible awful bad poor horrible rude lazy sloppy work"


@pytest.fixture
def metrics(state, flagging, clock) -> MetricsService:
    return MetricsService(state, SentimentAnalyzer(), flagging, RankingEngine(), clock=clock)


@pytest.fixture
def tracker(state, clock) -> ViewTracker:
    return ViewTracker(state, clock=clock)


def make_profile(profile_id: str, skill: str = "Plumbing", location: str = "Soweto") -> Profile:
    return Profile(id=profile_id, display_name=profile_id.title(), skill=skill, location=location)


class TestContentAnalysis:
    def test_strongly_negative_bio_is_flagged(self, metrics, state):
        record = metrics.analyze_profile_content("p1", HOSTILE_BIO, profile_name="Thabo")

        assert record.sentiment_label == "negative"
        assert record.confidence == pytest.approx(0.8)
        flags = state.unresolved_flags("p1")
        assert [flag.reason for flag in flags] == [FlagReason.NEGATIVE_SENTIMENT]
        assert flags[0].profile_name == "Thabo"

    def test_mildly_negative_bio_is_not_flagged(self, metrics, state):
        record = metrics.analyze_profile_content(
            "p1", "Unreliable service provider with poor quality work and overpriced rates."
        )
        assert record.sentiment_label == "negative"
        assert record.needs_rewrite is False
        assert state.flags == []

    def test_latest_record_per_content_type(self, metrics, state):
        metrics.analyze_profile_content("p1", "great", "bio")
        metrics.analyze_profile_content("p1", "awful", "bio")
        metrics.analyze_profile_content("p1", "friendly", "social_post")

        records = {record.content_type: record.content for record in state.sentiments_for("p1")}
        assert records == {"bio": "awful", "social_post": "friendly"}

    def test_on_profile_content_uses_bio(self, metrics, state):
        profile = make_profile("p1").model_copy(update={"bio": "Skilled and reliable plumber"})
        metrics.on_profile_content(profile)
        assert state.sentiment_records[("p1", "bio")].sentiment_label == "positive"


class TestSocialPosts:
    def test_record_social_post(self, metrics, state, clock):
        post = metrics.record_social_post("p1", "Friendly and efficient!", likes=30, shares=10, comments=10, reach=400)

        assert post.engagement_rate == 12.5
        assert post.interactions == 50
        assert post.created_at == clock.now
        assert state.social_posts["p1"] == [post]
        assert ("p1", "social_post") in state.sentiment_records

    def test_post_details_are_kept_but_not_scored(self, metrics, state):
        post = metrics.record_social_post(
            "p1",
            "Reliable plumbing, book now",
            platform="facebook",
            post_type="testimonial",
            hashtags=("#Terrible", "#Plumbing"),
            image_prompt="Awful before photo next to the repaired pipe",
        )

        assert post.post_type == "testimonial"
        assert post.hashtags == ["#Terrible", "#Plumbing"]
        assert post.image_prompt.startswith("Awful before photo")
        record = state.sentiment_records[("p1", "social_post")]
        assert record.content == "Reliable plumbing, book now"
        assert record.sentiment_score == 1.0

    def test_zero_reach(self, metrics):
        post = metrics.record_social_post("p1", "hello", likes=3)
        assert post.engagement_rate == 0.0


class TestOverallStats:
    def test_aggregates(self, metrics, tracker, state):
        profiles = [
            make_profile("a", "Plumbing", "Soweto"),
            make_profile("b", "Catering", "Soweto"),
            make_profile("c", "Catering", "Tembisa"),
        ]
        for _ in range(3):
            tracker.record_view("a")
        tracker.record_view("b")
        tracker.record_view("c")
        metrics.analyze_profile_content("a", "great")
        metrics.analyze_profile_content("b", "awful")
        metrics.analyze_profile_content("c", "great reliable")

        stats = metrics.overall_stats(profiles)

        assert stats.total_profiles == 3
        assert stats.total_views == 5
        assert stats.average_sentiment == pytest.approx(0.3333)
        assert stats.top_service == "Plumbing"
        assert stats.top_location == "Soweto"
        assert stats.flagged_profiles_count == 0

    def test_empty(self, metrics):
        stats = metrics.overall_stats([])
        assert stats.total_profiles == 0
        assert stats.top_service == ""
        assert stats.engagement_trend == "stable"
        assert stats.sentiment_trend == "stable"

    def test_top_service_ties_break_alphabetically(self, metrics):
        profiles = [make_profile("a", "Tutoring"), make_profile("b", "Catering")]
        assert metrics.overall_stats(profiles).top_service == "Catering"


class TestTrends:
    def fill(self, state, clock, current: int, prior: int):
        today = clock.now.date()
        state.daily_views[today] = current
        state.daily_views[today - timedelta(days=10)] = prior

    @pytest.mark.parametrize(
        "current,prior,expected",
        [
            (120, 100, "up"),
            (80, 100, "down"),
            (105, 100, "stable"),
            (95, 100, "stable"),
            (5, 0, "up"),
            (0, 0, "stable"),
        ],
    )
    def test_engagement_trend(self, metrics, state, clock, current, prior, expected):
        self.fill(state, clock, current, prior)
        assert metrics.engagement_trend(clock.now) == expected

    def test_views_older_than_two_windows_are_ignored(self, metrics, state, clock):
        state.daily_views[clock.now.date() - timedelta(days=20)] = 500
        assert metrics.engagement_trend(clock.now) == "stable"

    def test_sentiment_trend(self, metrics, state, clock):
        state.put_sentiment(
            SentimentRecord(profile_id="a", sentiment_score=0.5, analyzed_at=clock.now - timedelta(days=1))
        )
        state.put_sentiment(
            SentimentRecord(profile_id="b", sentiment_score=0.0, analyzed_at=clock.now - timedelta(days=8))
        )
        assert metrics.sentiment_trend(clock.now) == "improving"

        state.put_sentiment(
            SentimentRecord(profile_id="c", sentiment_score=1.0, analyzed_at=clock.now - timedelta(days=9))
        )
        assert metrics.sentiment_trend(clock.now) == "stable"

        state.put_sentiment(
            SentimentRecord(profile_id="d", sentiment_score=1.0, analyzed_at=clock.now - timedelta(days=10))
        )
        assert metrics.sentiment_trend(clock.now) == "declining"

    def test_sentiment_trend_sees_rewrites_of_the_same_bio(self, metrics, state, clock):
        clock.now = clock.now - timedelta(days=8)
        metrics.analyze_profile_content("p1", "plumber in soweto")
        clock.now = clock.now + timedelta(days=7)
        metrics.analyze_profile_content("p1", "reliable friendly plumber")
        clock.now = clock.now + timedelta(days=1)

        assert [record.content for record in state.sentiments_for("p1")] == ["reliable friendly plumber"]
        assert metrics.sentiment_trend(clock.now) == "improving"

    def test_sentiment_history_is_bounded(self, clock):
        state = EngagementState(sentiment_history_limit=3)
        metrics = MetricsService(state, SentimentAnalyzer(), FlaggingEngine(state, clock=clock), RankingEngine(), clock)
        for text in ("great", "awful", "bad", "good"):
            metrics.analyze_profile_content("p1", text)

        assert [record.content for record in state.sentiment_history] == ["awful", "bad", "good"]

    def test_deleted_profile_leaves_history(self, metrics, state):
        metrics.analyze_profile_content("p1", "great")
        metrics.analyze_profile_content("p2", "awful")
        state.purge_profile("p1")

        assert [record.profile_id for record in state.sentiment_history] == ["p2"]
        assert state.sentiment_history.maxlen == SENTIMENT_HISTORY_LIMIT

    def test_sentiment_trend_needs_both_windows(self, metrics, state, clock):
        state.put_sentiment(SentimentRecord(profile_id="a", sentiment_score=1.0, analyzed_at=clock.now))
        assert metrics.sentiment_trend(clock.now) == "stable"


class TestSnapshot:
    def test_snapshot_contents(self, metrics, tracker, clock):
        profiles = [make_profile("a"), make_profile("b")]
        tracker.record_view("a")
        metrics.analyze_profile_content("b", HOSTILE_BIO)
        metrics.record_social_post("a", "great work", likes=4, reach=10)

        snapshot = metrics.snapshot(profiles)

        assert snapshot.generated_at == clock.now
        assert [metric.profile_id for metric in snapshot.profile_views] == ["a"]
        assert len(snapshot.social_engagement) == 1
        assert len(snapshot.sentiment_analysis) == 2
        assert [flag.profile_id for flag in snapshot.flagged_profiles] == ["b"]
        assert snapshot.top_performing_profiles[0].profile_id == "a"
        assert snapshot.overall_stats.flagged_profiles_count == 1

    def test_snapshot_is_detached(self, metrics, tracker, state):
        tracker.record_view("a")
        snapshot = metrics.snapshot([make_profile("a")])

        snapshot.profile_views[0].total_views = 500
        assert state.view_metrics["a"].total_views == 1
        with pytest.raises(ValidationError):
            snapshot.generated_at = None

    def test_top_performers_limit(self, state, flagging, clock):
        metrics = MetricsService(state, SentimentAnalyzer(), flagging, RankingEngine(), clock=clock, top_limit=1)
        entries = metrics.top_performers([make_profile("a"), make_profile("b")])
        assert len(entries) == 1
