"""Tests for schedule evaluation and the repeating timer."""

import unittest
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from log_manager.errors import ConfigError
from log_manager.schedule import ScheduleSpec, ScheduleTimer, ScheduleTrigger, next_trigger


def _assert_minimal(test, spec, now, result):
    """No matching minute exists between *now* and *result*."""
    moment = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
    while moment < result:
        test.assertNotIn((moment.hour, moment.minute), spec.times, f"missed earlier match {moment}")
        moment += timedelta(minutes=1)


class TestScheduleSpec(unittest.TestCase):
    def test_daily_default_is_midnight(self):
        self.assertEqual(ScheduleSpec.daily().times, ((0, 0),))

    def test_times_sorted_and_deduplicated(self):
        spec = ScheduleSpec(times=((12, 30), (0, 0), (12, 30)))
        self.assertEqual(spec.times, ((0, 0), (12, 30)))

    def test_empty_rejected(self):
        with self.assertRaises(ConfigError):
            ScheduleSpec(times=())

    def test_out_of_range_rejected(self):
        for bad in ((24, 0), (-1, 0), (0, 60), (3, -5)):
            with self.assertRaises(ConfigError):
                ScheduleSpec(times=(bad,))

    def test_from_entries_cartesian_product(self):
        spec = ScheduleSpec.from_entries([{"hours": [0, 12], "minutes": [0, 30]}])
        self.assertEqual(spec.times, ((0, 0), (0, 30), (12, 0), (12, 30)))

    def test_from_entries_hhmm_strings(self):
        spec = ScheduleSpec.from_entries(["06:15", {"hours": [0]}])
        self.assertEqual(spec.times, ((0, 0), (6, 15)))

    def test_from_entries_missing_hours_means_every_hour(self):
        spec = ScheduleSpec.from_entries([{"minutes": [5]}])
        self.assertEqual(len(spec.times), 24)
        self.assertTrue(all(m == 5 for _, m in spec.times))

    def test_from_entries_bad_values(self):
        for entries in (["noon"], ["25:00"], [{"hours": ["x"]}], [42]):
            with self.assertRaises(ConfigError):
                ScheduleSpec.from_entries(entries)


class TestNextTrigger(unittest.TestCase):
    def test_midnight_next_day(self):
        now = datetime(2023, 6, 15, 10, 30, 12)
        self.assertEqual(next_trigger(ScheduleSpec.daily(), now), datetime(2023, 6, 16, 0, 0))

    def test_strictly_after_now(self):
        now = datetime(2023, 6, 15, 0, 0, 0)
        self.assertEqual(next_trigger(ScheduleSpec.daily(), now), datetime(2023, 6, 16, 0, 0))

    def test_just_before_trigger(self):
        now = datetime(2023, 6, 15, 23, 59, 59, 999999)
        self.assertEqual(next_trigger(ScheduleSpec.daily(), now), datetime(2023, 6, 16, 0, 0))

    def test_seconds_ignored_within_matching_minute(self):
        spec = ScheduleSpec(times=((12, 30),))
        now = datetime(2023, 6, 15, 12, 30, 5)
        self.assertEqual(next_trigger(spec, now), datetime(2023, 6, 16, 12, 30))

    def test_picks_earliest_of_several(self):
        spec = ScheduleSpec(times=((0, 0), (12, 30), (18, 0)))
        self.assertEqual(next_trigger(spec, datetime(2023, 6, 15, 12, 29, 59)),
                         datetime(2023, 6, 15, 12, 30))
        self.assertEqual(next_trigger(spec, datetime(2023, 6, 15, 12, 30)),
                         datetime(2023, 6, 15, 18, 0))
        self.assertEqual(next_trigger(spec, datetime(2023, 6, 15, 18, 0)),
                         datetime(2023, 6, 16, 0, 0))

    def test_month_and_year_rollover(self):
        spec = ScheduleSpec.daily()
        self.assertEqual(next_trigger(spec, datetime(2023, 12, 31, 8, 0)), datetime(2024, 1, 1))
        self.assertEqual(next_trigger(spec, datetime(2024, 2, 28, 8, 0)), datetime(2024, 2, 29))

    def test_result_matches_and_is_minimal(self):
        spec = ScheduleSpec(times=((1, 15), (9, 0), (23, 45)))
        nows = [
            datetime(2023, 3, 1, 0, 0),
            datetime(2023, 3, 1, 1, 15),
            datetime(2023, 3, 1, 9, 0, 30),
            datetime(2023, 3, 1, 23, 50),
        ]
        for now in nows:
            result = next_trigger(spec, now)
            self.assertGreater(result, now)
            self.assertIn((result.hour, result.minute), spec.times)
            self.assertEqual((result.second, result.microsecond), (0, 0))
            _assert_minimal(self, spec, now, result)

    def test_aware_now_keeps_tzinfo(self):
        tz = timezone(timedelta(hours=2))
        now = datetime(2023, 6, 15, 10, 0, tzinfo=tz)
        result = next_trigger(ScheduleSpec.daily(), now)
        self.assertEqual(result, datetime(2023, 6, 16, 0, 0, tzinfo=tz))
        self.assertIs(result.tzinfo, tz)

    def _new_york(self):
        try:
            return ZoneInfo("America/New_York")
        except ZoneInfoNotFoundError:
            self.skipTest("tz database not available")

    def test_dst_fold_second_pass_matches_same_day(self):
        tz = self._new_york()
        # 01:30 on the second pass through the repeated hour; 01:45 of the
        # first pass is already in the past, 01:45 of the second is not.
        now = datetime(2023, 11, 5, 1, 30, fold=1, tzinfo=tz)
        result = next_trigger(ScheduleSpec(times=((1, 45),)), now)
        self.assertEqual(result.date(), date(2023, 11, 5))
        self.assertEqual((result.hour, result.minute, result.fold), (1, 45, 1))
        self.assertEqual(result.timestamp() - now.timestamp(), 15 * 60)

    def test_dst_fold_first_pass_then_second_pass(self):
        tz = self._new_york()
        spec = ScheduleSpec(times=((1, 45),))
        first = next_trigger(spec, datetime(2023, 11, 5, 1, 30, tzinfo=tz))
        self.assertEqual(first.fold, 0)
        second = next_trigger(spec, first)
        self.assertEqual((second.date(), second.hour, second.minute), (date(2023, 11, 5), 1, 45))
        self.assertEqual(second.timestamp() - first.timestamp(), 3600)

    def test_dst_gap_fires_after_the_jump(self):
        tz = self._new_york()
        now = datetime(2023, 3, 12, 1, 0, tzinfo=tz)
        result = next_trigger(ScheduleSpec(times=((2, 30),)), now)
        # 02:30 does not exist that night; the trigger lands on 03:30 EDT.
        self.assertEqual(result.timestamp() - now.timestamp(), 90 * 60)


class TestScheduleTrigger(unittest.TestCase):
    def test_ignores_previous_fire_time(self):
        spec = ScheduleSpec.daily()
        trigger = ScheduleTrigger(spec)
        tz = timezone.utc
        now = datetime(2023, 6, 20, 9, 0, tzinfo=tz)
        missed = datetime(2023, 6, 15, 0, 0, tzinfo=tz)
        # A late wakeup does not replay the missed days.
        self.assertEqual(trigger.get_next_fire_time(missed, now),
                         datetime(2023, 6, 21, 0, 0, tzinfo=tz))
        self.assertEqual(trigger.get_next_fire_time(None, now),
                         datetime(2023, 6, 21, 0, 0, tzinfo=tz))

    def test_str(self):
        trigger = ScheduleTrigger(ScheduleSpec(times=((0, 0), (12, 30))))
        self.assertEqual(str(trigger), "schedule[00:00, 12:30]")


class TestScheduleTimer(unittest.TestCase):
    def test_start_arms_next_trigger(self):
        spec = ScheduleSpec(times=((3, 0), (15, 0)))
        timer = ScheduleTimer(spec, lambda: None)
        self.assertIsNone(timer.next_fire_time)
        timer.start()
        try:
            self.assertTrue(timer.running)
            fire = timer.next_fire_time
            self.assertIsNotNone(fire)
            self.assertIn((fire.hour, fire.minute), spec.times)
            self.assertGreater(fire.timestamp(), datetime.now().timestamp())
        finally:
            timer.shutdown()
        self.assertFalse(timer.running)

    def test_shutdown_before_start_is_noop(self):
        timer = ScheduleTimer(ScheduleSpec.daily(), lambda: None)
        timer.shutdown()
        self.assertFalse(timer.running)


if __name__ == "__main__":
    unittest.main()
