import json
from datetime import timedelta

import pytest

from skillhub.models.metrics import FlagReason
from skillhub.models.profile import ProfileStatus
from skillhub.services.engine import ProfileEngine
from skillhub.services.repository import InMemoryProfileRepository
from tests.conftest import make_gemini

PLUMBER = {"full_name": "Thabo Mokoena", "service": "Plumbing", "years_experience": 8, "location": "Soweto"}


def gemini_bio(bio: str, price: int = 300):
    return make_gemini(json.dumps({"bio": bio, "price": price}))


@pytest.fixture
def engine(settings, offline_gemini, clock) -> ProfileEngine:
    return ProfileEngine(settings=settings, gemini=offline_gemini, clock=clock)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_offline_profile_gets_fallback_content(self, engine):
        profile = await engine.store.create(PLUMBER)
        profile = await engine.store.wait_for_generation(profile.id)

        assert profile.status == ProfileStatus.READY
        assert profile.suggested_price == 540
        assert engine.state.sentiment_records[(profile.id, "bio")].sentiment_label in ("positive", "neutral")
        await engine.close()

    @pytest.mark.asyncio
    async def test_default_repository_is_in_memory(self, engine):
        assert isinstance(engine.sync.repository, InMemoryProfileRepository)
        assert engine.sync.mirror is None

    @pytest.mark.asyncio
    async def test_hostile_generated_bio_is_flagged_and_rewritten(self, settings, clock):
        engine = ProfileEngine(
            settings=settings,
            gemini=gemini_bio("terrible awful bad poor horrible rude lazy sloppy work"),
            clock=clock,
        )
        profile = await engine.store.create(PLUMBER)
        await engine.store.wait_for_generation(profile.id)

        flags = engine.state.unresolved_flags(profile.id)
        assert [flag.reason for flag in flags] == [FlagReason.NEGATIVE_SENTIMENT]
        assert flags[0].profile_name == "Thabo Mokoena"

        rewritten = await engine.rewrite_bio(profile.id, "Reliable, skilled and friendly plumber in Soweto.")
        assert rewritten.bio == "Reliable, skilled and friendly plumber in Soweto."
        assert engine.flagging.rewrite_count(profile.id) == 1
        assert engine.state.sentiment_records[(profile.id, "bio")].sentiment_label == "positive"

        engine.flagging.resolve(profile.id)
        snapshot = engine.snapshot()
        assert snapshot.overall_stats.flagged_profiles_count == 0
        assert snapshot.flagged_profiles[0].rewrite_count == 1
        await engine.close()

    @pytest.mark.asyncio
    async def test_rewrite_of_unknown_profile(self, engine):
        assert await engine.rewrite_bio("missing", "text") is None


class TestEngagement:
    @pytest.mark.asyncio
    async def test_views_and_bookings(self, engine):
        profile = await engine.store.create(PLUMBER)
        await engine.store.wait_for_generation(profile.id)

        for viewer in ("a", "b", "a", None):
            metric = engine.record_view(profile.id, viewer_id=viewer)
        assert metric.total_views == 4
        assert metric.unique_views == 2
        assert metric.profile_name == "Thabo Mokoena"

        metric = engine.record_booking(profile.id)
        assert metric.conversion_rate == 25.0
        await engine.close()

    def test_view_of_unknown_profile_is_ignored(self, engine):
        assert engine.record_view("missing") is None
        assert engine.state.view_metrics == {}

    @pytest.mark.asyncio
    async def test_review_performance_flags_idle_profiles(self, engine, clock):
        profile = await engine.store.create(PLUMBER)
        await engine.store.wait_for_generation(profile.id)
        engine.record_view(profile.id)

        assert engine.review_performance() == 0
        clock.now = clock.now + timedelta(days=45)
        assert engine.review_performance() == 1
        assert engine.review_performance() == 1
        assert engine.state.flagged_profiles_count == 1
        await engine.close()

    @pytest.mark.asyncio
    async def test_snapshot_ranks_profiles_without_views(self, engine):
        first = await engine.store.create(PLUMBER)
        second = await engine.store.create({**PLUMBER, "full_name": "Bongani", "service": "Electrical"})
        await engine.store.drain()
        engine.record_view(first.id)

        snapshot = engine.snapshot()

        assert [entry.profile_id for entry in snapshot.top_performing_profiles] == [first.id, second.id]
        assert snapshot.top_performing_profiles[1].total_views == 0
        assert snapshot.overall_stats.total_profiles == 2
        assert snapshot.overall_stats.total_views == 1
        assert snapshot.overall_stats.top_service == "Plumbing"
        await engine.close()

    @pytest.mark.asyncio
    async def test_deleted_profile_disappears_from_metrics(self, engine):
        profile = await engine.store.create(PLUMBER)
        await engine.store.wait_for_generation(profile.id)
        engine.record_view(profile.id)

        await engine.store.delete(profile.id)
        snapshot = engine.snapshot()

        assert snapshot.profile_views == []
        assert snapshot.sentiment_analysis == []
        assert snapshot.top_performing_profiles == []
        await engine.close()

    @pytest.mark.asyncio
    async def test_views_after_booking_raise_poor_conversion(self, engine):
        profile = await engine.store.create(PLUMBER)
        await engine.store.wait_for_generation(profile.id)

        engine.record_view(profile.id)
        assert engine.record_booking(profile.id).conversion_rate == 100.0
        for _ in range(499):
            engine.record_view(profile.id)

        assert engine.views.get(profile.id).conversion_rate == pytest.approx(0.2)
        assert engine.review_performance() == 1
        assert [flag.reason for flag in engine.state.unresolved_flags(profile.id)] == [FlagReason.POOR_CONVERSION]
        await engine.close()

    @pytest.mark.asyncio
    async def test_deleted_profile_loses_rewrite_count(self, settings, clock):
        engine = ProfileEngine(
            settings=settings, gemini=gemini_bio("terrible awful bad poor horrible rude lazy sloppy work"), clock=clock
        )
        profile = await engine.store.create(PLUMBER)
        await engine.store.wait_for_generation(profile.id)
        assert await engine.rewrite_bio(profile.id, "Friendly reliable plumber.") is not None
        assert engine.flagging.rewrite_count(profile.id) == 1

        await engine.store.delete(profile.id)
        assert engine.flagging.rewrite_count(profile.id) == 0
        assert profile.id not in engine.state.rewrite_counts
        await engine.close()


class TestSocialPosts:
    @pytest.mark.asyncio
    async def test_offline_post_is_recorded(self, engine):
        profile = await engine.store.create(PLUMBER)
        await engine.store.wait_for_generation(profile.id)

        post = await engine.generate_social_post(profile.id, platform="twitter", post_type="tips")

        assert post.platform == "twitter"
        assert post.post_type == "tips"
        assert "Thabo Mokoena" in post.content
        assert "#Plumbing" in post.hashtags
        assert post.image_prompt
        assert post.likes == 0
        assert engine.state.social_posts[profile.id] == [post]
        assert (profile.id, "social_post") in engine.state.sentiment_records
        snapshot = engine.snapshot()
        assert [p.post_id for p in snapshot.social_engagement] == [post.post_id]
        await engine.close()

    @pytest.mark.asyncio
    async def test_generated_post_is_scored_on_content(self, settings, clock):
        reply = json.dumps(
            {
                "content": "Excellent reliable plumbing, friendly and professional. Book today!",
                "hashtags": ["#Terrible", "#Awful"],
                "imagePrompt": "Plumber at work",
            }
        )
        engine = ProfileEngine(settings=settings, gemini=make_gemini(reply), clock=clock)
        profile = await engine.store.create(PLUMBER)
        await engine.store.drain()

        post = await engine.generate_social_post(profile.id)

        assert post.hashtags == ["#Terrible", "#Awful"]
        assert post.image_prompt == "Plumber at work"
        assert post.sentiment_score == 1.0
        assert engine.state.sentiment_records[(profile.id, "social_post")].sentiment_label == "positive"
        await engine.close()

    @pytest.mark.asyncio
    async def test_unknown_profile(self, engine):
        assert await engine.generate_social_post("missing") is None
        assert engine.state.social_posts == {}
