from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from loguru import logger

from skillhub.core.constants import TREND_WINDOW_DAYS, WEEK_WINDOW_DAYS
from skillhub.models.metrics import ViewMetric
from skillhub.models.profile import ProfileKind
from skillhub.services.state import EngagementState


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ViewTracker:
    """
    Maintains per-profile view counters.

    Windowed counters compare the previous view with the current one on UTC calendar
    boundaries: same day, trailing seven days, same month. Each update runs under the
    profile's lock so concurrent views cannot lose increments.
    """

    def __init__(self, state: EngagementState, clock: Callable[[], datetime] = _utcnow):
        self.state = state
        self.clock = clock

    def record_view(
        self,
        profile_id: str,
        display_name: str = "",
        profile_kind: ProfileKind = "service",
        viewer_id: str | None = None,
        viewed_at: datetime | None = None,
    ) -> ViewMetric:
        now = _as_utc(viewed_at or self.clock())

        with self.state.lock_for(profile_id):
            metric = self.state.view_metrics.get(profile_id)
            if metric is None:
                metric = ViewMetric(
                    profile_id=profile_id,
                    profile_name=display_name,
                    profile_kind=profile_kind,
                    last_viewed_at=now,
                )
                self.state.view_metrics[profile_id] = metric
                if viewer_id:
                    self.state.viewers[profile_id].add(viewer_id)
            else:
                last = _as_utc(metric.last_viewed_at)
                if now < last:
                    # Late event: count it, but keep the window anchor where it is
                    logger.debug(f"Out-of-order view for {profile_id} at {now.isoformat()}, clamping to {last}")
                    now = last

                metric.total_views += 1
                metric.views_today = metric.views_today + 1 if now.date() == last.date() else 1
                metric.views_this_week = (
                    metric.views_this_week + 1 if last >= now - timedelta(days=WEEK_WINDOW_DAYS) else 1
                )
                metric.views_this_month = (
                    metric.views_this_month + 1 if (last.year, last.month) == (now.year, now.month) else 1
                )
                metric.last_viewed_at = now
                if display_name:
                    metric.profile_name = display_name

                if viewer_id and viewer_id not in self.state.viewers[profile_id]:
                    self.state.viewers[profile_id].add(viewer_id)
                    metric.unique_views += 1

            metric.conversion_rate = self.conversion_rate(metric.bookings, metric.total_views)
            self.state.record_daily_view(now.date(), keep_days=TREND_WINDOW_DAYS * 2)
            return metric.model_copy()

    def record_booking(self, profile_id: str) -> ViewMetric | None:
        """Register a completed booking and recompute the conversion rate."""
        with self.state.lock_for(profile_id):
            metric = self.state.view_metrics.get(profile_id)
            if metric is None:
                logger.debug(f"Ignoring booking for profile {profile_id} with no recorded views")
                return None
            metric.bookings += 1
            metric.conversion_rate = self.conversion_rate(metric.bookings, metric.total_views)
            return metric.model_copy()

    @staticmethod
    def conversion_rate(bookings: int, total_views: int) -> float:
        if total_views <= 0:
            return 0.0
        return min(max(bookings / total_views * 100, 0.0), 100.0)

    def get(self, profile_id: str) -> ViewMetric | None:
        metric = self.state.view_metrics.get(profile_id)
        return metric.model_copy() if metric else None
