"""Tests for the launch gate, launch windows, leaderboards and the cron sweep."""

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
from conftest import NOW
from sqlmodel import select

from launchhub.errors import BadRequestError
from launchhub.launch import (
    LaunchWindow,
    WindowBounds,
    count_launched_in,
    ensure_votable,
    is_live,
    leaderboard,
    next_launch,
    past_launches,
    sweep_launches,
    todays_winners,
    upcoming_launches,
    window_bounds,
    yesterdays_winners,
)
from launchhub.metrics import sample_value
from launchhub.models import Product

TODAY = datetime(2024, 5, 15, tzinfo=UTC)
YESTERDAY = TODAY - timedelta(days=1)


# =============================================================================
# Launch Gate
# =============================================================================


class TestLaunchGate:
    def test_live_at_exact_launch_instant(self):
        assert is_live(NOW, now=NOW)

    def test_not_live_one_second_before(self):
        assert not is_live(NOW, now=NOW - timedelta(seconds=1))

    def test_live_after_launch(self):
        assert is_live(NOW - timedelta(days=3), now=NOW)

    def test_naive_datetimes_are_treated_as_utc(self):
        assert is_live(datetime(2024, 5, 15, 12, 0), now=NOW)

    def test_ensure_votable_rejects_draft(self, make_product):
        product = make_product(is_launched=False)
        with pytest.raises(BadRequestError, match="not been published"):
            ensure_votable(product, NOW)

    def test_ensure_votable_rejects_future_launch(self, make_product):
        product = make_product(launch_date=NOW + timedelta(minutes=1))
        with pytest.raises(BadRequestError, match="not launched yet"):
            ensure_votable(product, NOW)

    def test_ensure_votable_accepts_live_product(self, make_product):
        ensure_votable(make_product(), NOW)


# =============================================================================
# Launch Windows
# =============================================================================


class TestWindowBounds:
    def test_today(self):
        bounds = window_bounds(LaunchWindow.TODAY, NOW, UTC)
        assert bounds == WindowBounds(TODAY, TODAY + timedelta(days=1))

    def test_yesterday(self):
        bounds = window_bounds(LaunchWindow.YESTERDAY, NOW, UTC)
        assert bounds == WindowBounds(YESTERDAY, TODAY)

    def test_past_is_open_ended(self):
        bounds = window_bounds(LaunchWindow.PAST, NOW, UTC)
        assert bounds.start is None
        assert bounds.end == TODAY

    def test_half_open_membership(self):
        bounds = window_bounds(LaunchWindow.YESTERDAY, NOW, UTC)

        assert YESTERDAY in bounds
        assert TODAY - timedelta(microseconds=1) in bounds
        assert TODAY not in bounds
        assert YESTERDAY - timedelta(microseconds=1) not in bounds

    def test_windows_follow_configured_timezone(self):
        tokyo = ZoneInfo("Asia/Tokyo")
        # 12:00 UTC is 21:00 in Tokyo; the Tokyo day began at 15:00 UTC the day before
        bounds = window_bounds(LaunchWindow.TODAY, NOW, tokyo)

        assert bounds.start == datetime(2024, 5, 14, 15, 0, tzinfo=UTC)
        assert bounds.end == datetime(2024, 5, 15, 15, 0, tzinfo=UTC)


# =============================================================================
# Leaderboard Query
# =============================================================================


class TestLeaderboard:
    def test_ranked_by_votes(self, session, make_product, add_votes):
        low = make_product("Low", launch_date=TODAY + timedelta(hours=1))
        high = make_product("High", launch_date=TODAY + timedelta(hours=2))
        mid = make_product("Mid", launch_date=TODAY + timedelta(hours=3))
        add_votes(low, 1)
        add_votes(high, 5)
        add_votes(mid, 3)

        cards = leaderboard(session, LaunchWindow.TODAY, now=NOW, tz=UTC)

        assert [c.name for c in cards] == ["High", "Mid", "Low"]
        assert [c.vote_count for c in cards] == [5, 3, 1]

    def test_ties_go_to_earlier_launch_then_id(self, session, make_product, add_votes):
        later = make_product("Later", launch_date=TODAY + timedelta(hours=5))
        earlier = make_product("Earlier", launch_date=TODAY + timedelta(hours=1))
        same_b = make_product("Same B", id="b" * 32, launch_date=TODAY + timedelta(hours=3))
        same_a = make_product("Same A", id="a" * 32, launch_date=TODAY + timedelta(hours=3))
        for product in (later, earlier, same_a, same_b):
            add_votes(product, 2)

        cards = leaderboard(session, LaunchWindow.TODAY, now=NOW, tz=UTC)

        assert [c.name for c in cards] == ["Earlier", "Same A", "Same B", "Later"]

    def test_only_requested_window(self, session, make_product, add_votes):
        make_product("Today", launch_date=TODAY + timedelta(hours=1))
        make_product("Yesterday", launch_date=YESTERDAY + timedelta(hours=1))
        make_product("Last Week", launch_date=TODAY - timedelta(days=7))

        today = leaderboard(session, LaunchWindow.TODAY, now=NOW, tz=UTC)
        yesterday = leaderboard(session, LaunchWindow.YESTERDAY, now=NOW, tz=UTC)

        assert [c.name for c in today] == ["Today"]
        assert [c.name for c in yesterday] == ["Yesterday"]
        for card in yesterday:
            assert YESTERDAY <= card.launch_date < TODAY

    def test_excludes_drafts(self, session, make_product):
        make_product("Draft", is_launched=False, launch_date=TODAY + timedelta(hours=1))
        assert leaderboard(session, LaunchWindow.TODAY, now=NOW, tz=UTC) == []

    def test_product_launching_tomorrow_morning(self, session, make_product):
        """A launch at tomorrow 09:00 stays off today's board until it is live."""
        tomorrow_nine = TODAY + timedelta(days=1, hours=9)
        make_product("Tomorrow", launch_date=tomorrow_nine)

        assert todays_winners(session, NOW) == []
        assert todays_winners(session, tomorrow_nine - timedelta(seconds=1)) == []
        assert [c.name for c in todays_winners(session, tomorrow_nine)] == ["Tomorrow"]

    def test_later_today_hidden_until_live(self, session, make_product):
        make_product("Afternoon", launch_date=NOW + timedelta(hours=3))

        assert todays_winners(session, NOW) == []
        assert len(todays_winners(session, NOW + timedelta(hours=3))) == 1

    def test_winners_limited_to_leaderboard_size(self, session, make_product, add_votes):
        for i in range(5):
            add_votes(make_product(f"Winner {i}", launch_date=YESTERDAY + timedelta(hours=i)), i)

        winners = yesterdays_winners(session, NOW)

        assert [c.name for c in winners] == ["Winner 4", "Winner 3", "Winner 2"]

    def test_cards_carry_maker_and_counts(self, session, make_product, maker, add_votes):
        add_votes(make_product("Solo", launch_date=TODAY + timedelta(hours=1)), 2)

        (card,) = leaderboard(session, LaunchWindow.TODAY, now=NOW, tz=UTC)

        assert card.maker.id == maker.id
        assert card.vote_count == 2
        assert card.comment_count == 0


class TestPastLaunches:
    @pytest.fixture
    def history(self, make_product, add_votes):
        products = []
        for i, votes in enumerate([3, 7, 1, 7, 0]):
            product = make_product(f"Past {i}", launch_date=TODAY - timedelta(days=i + 1))
            add_votes(product, votes)
            products.append(product)
        # Launched today, never part of past launches
        add_votes(make_product("Fresh", launch_date=TODAY + timedelta(hours=1)), 10)
        return products

    def test_pages_cover_ranking_without_overlap(self, session, history):
        full = past_launches(session, limit=50, now=NOW, tz=UTC)
        expected = [c.name for c in full.items]

        seen, cursor = [], None
        while True:
            page = past_launches(session, limit=2, cursor=cursor, now=NOW, tz=UTC)
            seen.extend(c.name for c in page.items)
            cursor = page.next_cursor
            if cursor is None:
                break

        assert seen == expected
        assert expected == ["Past 3", "Past 1", "Past 0", "Past 2", "Past 4"]
        assert "Fresh" not in seen

    def test_last_page_has_no_cursor(self, session, history):
        page = past_launches(session, limit=5, now=NOW, tz=UTC)

        assert len(page.items) == 5
        assert page.next_cursor is None

    def test_next_cursor_is_last_item_id(self, session, history):
        page = past_launches(session, limit=2, now=NOW, tz=UTC)
        assert page.next_cursor == page.items[-1].id

    def test_unknown_cursor_rejected(self, session, history):
        with pytest.raises(BadRequestError, match="Invalid cursor"):
            past_launches(session, limit=2, cursor="missing", now=NOW, tz=UTC)

    def test_cursor_outside_window_rejected(self, session, history):
        fresh = session.exec(select(Product).where(Product.name == "Fresh")).one()
        with pytest.raises(BadRequestError):
            past_launches(session, limit=2, cursor=fresh.id, now=NOW, tz=UTC)


class TestUpcoming:
    def test_upcoming_sorted_by_launch_date(self, session, make_product):
        make_product("Live", launch_date=NOW - timedelta(minutes=1))
        make_product("Next Week", launch_date=NOW + timedelta(days=7))
        make_product("Tomorrow", launch_date=NOW + timedelta(days=1))
        make_product("Hidden Draft", launch_date=NOW + timedelta(hours=1), is_launched=False)

        names = [c.name for c in upcoming_launches(session, NOW)]

        assert names == ["Tomorrow", "Next Week"]
        assert next_launch(session, NOW).name == "Tomorrow"

    def test_no_next_launch(self, session):
        assert next_launch(session, NOW) is None


# =============================================================================
# Cron Sweep
# =============================================================================


class TestCronSweep:
    def test_marks_due_products(self, session, make_product):
        due = make_product("Due", launch_date=NOW - timedelta(hours=2))
        exact = make_product("Exact", launch_date=NOW)
        future = make_product("Future", launch_date=NOW + timedelta(hours=1))
        draft = make_product("Draft", launch_date=NOW - timedelta(hours=1), is_launched=False)

        assert sweep_launches(session, NOW) == 2

        for product in (due, exact, future, draft):
            session.refresh(product)
        assert due.launch_started and exact.launch_started
        assert not future.launch_started
        assert not draft.launch_started

    def test_idempotent(self, session, make_product):
        make_product("Due", launch_date=NOW - timedelta(hours=2))

        assert sweep_launches(session, NOW) == 1
        assert sweep_launches(session, NOW) == 0

    def test_picks_up_later_launches(self, session, make_product):
        make_product("Soon", launch_date=NOW + timedelta(minutes=30))

        assert sweep_launches(session, NOW) == 0
        assert sweep_launches(session, NOW + timedelta(minutes=30)) == 1

    def test_records_metrics(self, session, make_product):
        make_product("Due", launch_date=NOW - timedelta(hours=2))
        runs_before = sample_value("cron_sweeps_total", {"status": "success"})
        launched_before = sample_value("products_launched_total")

        sweep_launches(session, NOW)

        assert sample_value("cron_sweeps_total", {"status": "success"}) == runs_before + 1
        assert sample_value("products_launched_total") == launched_before + 1


def test_count_launched_in(session, make_product):
    make_product("Morning", launch_date=TODAY + timedelta(hours=8))
    make_product("Evening", launch_date=TODAY + timedelta(hours=20))
    make_product("Yesterday", launch_date=YESTERDAY + timedelta(hours=8))

    assert count_launched_in(session, LaunchWindow.TODAY, NOW) == 1
    assert count_launched_in(session, LaunchWindow.YESTERDAY, NOW) == 1
    assert count_launched_in(session, LaunchWindow.PAST, NOW) == 1
