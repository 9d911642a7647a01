import unittest

from itinerary_map.api.dates import format_planned_dates_short, group_consecutive, parse_day_date
from itinerary_map.api.keys import parse_day_key, parse_place_key, poi_key, stop_key
from itinerary_map.api.models import ParsedKey, PlaceKind


class TestStorageKeys(unittest.TestCase):
    def test_day_key_parses_id(self):
        self.assertEqual(parse_day_key("day:2026-04-25"), ParsedKey(PlaceKind.DAY, "2026-04-25"))

    def test_place_key_parses_poi_and_stop(self):
        self.assertEqual(parse_place_key("poi:kix"), ParsedKey(PlaceKind.POI, "kix"))
        self.assertEqual(parse_place_key("stop:liber-osaka"), ParsedKey(PlaceKind.STOP, "liber-osaka"))

    def test_unknown_keys_return_none(self):
        self.assertIsNone(parse_place_key("nonsense"))
        self.assertIsNone(parse_place_key("day:2026-04-25"))
        self.assertIsNone(parse_place_key(None))
        self.assertIsNone(parse_day_key("poi:kix"))

    def test_kind_compares_as_text(self):
        self.assertEqual(PlaceKind.POI, "poi")
        self.assertEqual(poi_key("kix"), "poi:kix")
        self.assertEqual(stop_key("kyoto-inn"), "stop:kyoto-inn")


class TestDayDates(unittest.TestCase):
    def test_both_label_formats_parse_to_noon(self):
        a = parse_day_date("25 Apr 2026")
        b = parse_day_date("2026-04-25")
        self.assertEqual(a, b)
        self.assertEqual(a.hour, 12)

    def test_unparseable_and_impossible_dates(self):
        self.assertIsNone(parse_day_date("someday"))
        self.assertIsNone(parse_day_date("31 Feb 2026"))
        self.assertIsNone(parse_day_date("25 Xyz 2026"))
        self.assertIsNone(parse_day_date(None))

    def test_group_consecutive_runs(self):
        dates = [parse_day_date(d) for d in ("2026-04-25", "2026-04-26", "2026-04-28")]
        runs = group_consecutive(dates)
        self.assertEqual(len(runs), 2)
        self.assertEqual(runs[0], (dates[0], dates[1]))
        self.assertEqual(runs[1], (dates[2], dates[2]))


class TestPlannedDateFormatting(unittest.TestCase):
    def test_runs_joined_with_slash(self):
        self.assertEqual(
            format_planned_dates_short(["25 Apr 2026", "26 Apr 2026", "28 Apr 2026"]),
            "25–26 Apr / 28 Apr",
        )

    def test_run_across_month_boundary(self):
        self.assertEqual(format_planned_dates_short(["30 Apr 2026", "1 May 2026"]), "30 Apr–1 May")

    def test_unsorted_duplicates_and_garbage(self):
        labels = ["28 Apr 2026", "garbage", "25 Apr 2026", "2026-04-25", "31 Feb 2026"]
        self.assertEqual(format_planned_dates_short(labels), "25 Apr / 28 Apr")

    def test_repeated_labels_for_one_date_render_once(self):
        labels = ["25 Apr 2026", "25 Apr 2026", "2026-04-25", "26 Apr 2026"]
        self.assertEqual(format_planned_dates_short(labels), "25–26 Apr")

    def test_empty(self):
        self.assertEqual(format_planned_dates_short([]), "")
        self.assertEqual(format_planned_dates_short(["nope"]), "")


if __name__ == "__main__":
    unittest.main(verbosity=2)
