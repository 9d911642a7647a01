import unittest

from itinerary_map.api.models import Day, PlaceKind, Poi, Position
from itinerary_map.api.services.focus_service import DayFocusService

from tests.fakes import AIRPORT, POIS, STOPS, make_state


class TestTransitLegs(unittest.TestCase):
    def setUp(self):
        self.state = make_state()
        self.focus = DayFocusService(self.state, airport_poi_id=AIRPORT)

    def test_first_day_flies_in_from_airport(self):
        leg = self.focus.get_transit_leg_for_day(0)
        self.assertEqual((leg.origin.kind, leg.origin.id), (PlaceKind.POI, "kix"))
        self.assertEqual((leg.destination.kind, leg.destination.id), (PlaceKind.STOP, "liber-osaka"))
        self.assertEqual(leg.origin.position, Position(*POIS["kix"][:2]))

    def test_stop_change_is_stop_to_stop(self):
        leg = self.focus.get_transit_leg_for_day(3)
        self.assertEqual((leg.origin.kind, leg.origin.id), (PlaceKind.STOP, "liber-osaka"))
        self.assertEqual((leg.destination.kind, leg.destination.id), (PlaceKind.STOP, "kyoto-inn"))

    def test_unchanged_stop_has_no_leg(self):
        self.assertIsNone(self.focus.get_transit_leg_for_day(1))
        self.assertIsNone(self.focus.get_transit_leg_for_day(5))

    def test_last_day_flies_out(self):
        leg = self.focus.get_transit_leg_for_day(11)
        self.assertEqual((leg.origin.kind, leg.origin.id), (PlaceKind.STOP, "tokyo-hotel"))
        self.assertEqual((leg.destination.kind, leg.destination.id), (PlaceKind.POI, "kix"))

    def test_out_of_range_day(self):
        self.assertIsNone(self.focus.get_transit_leg_for_day(12))
        self.assertIsNone(self.focus.get_transit_leg_for_day(-1))

    def test_airport_rule_can_be_disabled(self):
        focus = DayFocusService(self.state, airport_poi_id="")
        self.assertIsNone(focus.get_transit_leg_for_day(0))

    def test_unresolved_airport_falls_through(self):
        del self.state.pois["kix"]
        self.assertIsNone(self.focus.get_transit_leg_for_day(0))

    def test_missing_stop_reference_yields_no_leg(self):
        self.state.days[3].stop_id = "ghost"
        self.assertIsNone(self.focus.get_transit_leg_for_day(3))


class TestFocusPoints(unittest.TestCase):
    def setUp(self):
        self.state = make_state()
        self.focus = DayFocusService(self.state, airport_poi_id=AIRPORT)

    def test_points_include_leg_endpoints_once(self):
        leg = self.focus.get_transit_leg_for_day(0)
        points = self.focus.get_day_focus_points(0, leg)
        # stop, kix, dotonbori; the leg repeats kix and the stop
        self.assertEqual(len(points), 3)
        self.assertEqual(points[0], Position(*STOPS["liber-osaka"][:2]))

    def test_coincident_poi_is_deduplicated(self):
        lat, lng = STOPS["kyoto-inn"][:2]
        self.state.pois["lobby"] = Poi("lobby", "poi:lobby", "Lobby", Position(lat, lng))
        self.state.days[4].poi_ids.append("lobby")
        self.assertEqual(len(self.focus.get_day_focus_points(4)), 2)

    def test_unknown_references_contribute_nothing(self):
        self.state.days.append(Day("x", "day:x", "7 May 2026", stop_id="ghost", poi_ids=["nope"]))
        self.assertEqual(self.focus.get_day_focus_points(12), [])
        self.assertIsNone(DayFocusService.calculate_bounds([]))

    def test_bounds(self):
        bounds = DayFocusService.calculate_bounds([Position(34.0, 135.0), Position(35.5, 139.7)])
        self.assertEqual(bounds, {"north": 35.5, "south": 34.0, "east": 139.7, "west": 135.0})

    def test_highlight_sets_include_transit(self):
        leg = self.focus.get_transit_leg_for_day(3)
        stop_ids, poi_ids = self.focus.highlight_sets(3, leg)
        self.assertEqual(stop_ids, {"kyoto-inn", "liber-osaka"})
        self.assertEqual(poi_ids, set())
        self.assertEqual(self.focus.highlight_sets(None), (set(), set()))


if __name__ == "__main__":
    unittest.main(verbosity=2)
