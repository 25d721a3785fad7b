"""Tests for the injectable clock."""

from datetime import date, datetime, timedelta, timezone

from erp_kernel.domain.clock import DeterministicClock, SystemClock

KST = timezone(timedelta(hours=9))


class TestDeterministicClock:

    def test_frozen_until_advanced(self):
        clock = DeterministicClock(datetime(2025, 9, 30, 12, 0, tzinfo=timezone.utc))
        assert clock.now() == clock.now()

        clock.advance(3600)

        assert clock.now() == datetime(2025, 9, 30, 13, 0, tzinfo=timezone.utc)

    def test_advance_by_days(self):
        clock = DeterministicClock(datetime(2025, 9, 30, 12, 0, tzinfo=timezone.utc))
        clock.advance(0, days=1)
        assert clock.today() == date(2025, 10, 1)

    def test_naive_time_read_as_utc(self):
        clock = DeterministicClock(datetime(2025, 9, 30, 12, 0))
        assert clock.now().tzinfo == timezone.utc

    def test_set_time_normalizes_to_utc(self):
        clock = DeterministicClock()
        clock.set_time(datetime(2025, 10, 1, 8, 0, tzinfo=KST))
        assert clock.now() == datetime(2025, 9, 30, 23, 0, tzinfo=timezone.utc)


class TestBusinessDate:

    def test_today_uses_business_timezone(self):
        # 23:30 UTC on 09-30 is 08:30 on 10-01 at the plant
        instant = datetime(2025, 9, 30, 23, 30, tzinfo=timezone.utc)

        assert DeterministicClock(instant).today() == date(2025, 9, 30)
        assert DeterministicClock(instant, business_tz=KST).today() == date(2025, 10, 1)

    def test_system_clock_is_utc_aware(self):
        assert SystemClock().now().tzinfo == timezone.utc
