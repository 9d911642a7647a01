import unittest

from itinerary_map.api.models import Poi, Position
from itinerary_map.api.services.focus_service import DayFocusService
from itinerary_map.api.services.map_service import (
    HIGHLIGHT_CLASS,
    TRANSIT_ROUTE_LAYER_ID,
    TRANSIT_ROUTE_SOURCE_ID,
    MapService,
)
from itinerary_map.api.services.map_surface import CommandMapSurface, MapSurfaceError

from tests.fakes import AIRPORT, POIS, STOPS, RecordingMapSurface, make_state


def highlighted(surface):
    return {marker_id for marker_id, classes in surface.marker_classes.items() if HIGHLIGHT_CLASS in classes}


class MapServiceTestCase(unittest.TestCase):
    style_loaded = True

    def setUp(self):
        self.state = make_state()
        self.surface = RecordingMapSurface()
        self.surface.set_style_loaded(self.style_loaded)
        self.service = MapService(self.surface, self.state, DayFocusService(self.state, airport_poi_id=AIRPORT))
        self.service.render_overlays()


class TestOverlays(MapServiceTestCase):
    def test_one_marker_per_place(self):
        self.assertEqual(len(self.surface.markers), len(STOPS) + len(POIS))
        adds = [c for c in self.surface.history if c["op"] == "add_marker"]
        self.assertEqual([c["element"]["label"] for c in adds[:3]], ["1", "2", "3"])
        kyoto = next(c for c in adds if c["id"] == "stop:kyoto-inn")
        self.assertEqual(kyoto["element"]["badge"], "28 Apr–1 May")

    def test_rerender_replaces_markers(self):
        self.service.render_overlays()
        self.assertEqual(len(self.surface.markers), len(STOPS) + len(POIS))

    def test_overview_fit(self):
        fits = [c for c in self.surface.history if c["op"] == "fit_bounds"]
        self.assertEqual(fits[-1]["padding"], 40)

    def test_popup_html_is_escaped(self):
        self.state.pois["dotonbori"].name = "<b>Dotonbori</b>"
        html = self.service.poi_popup_html(self.state.pois["dotonbori"])
        self.assertIn("&lt;b&gt;Dotonbori&lt;/b&gt;", html)
        self.assertIn("Planned: 25 Apr / 27 Apr", html)

    def test_select_stop(self):
        self.assertTrue(self.service.select_stop(1, zoom=12))
        self.assertEqual(self.surface.open_popup_id, "stop:kyoto-inn")
        self.assertEqual(self.surface.history[-2]["op"], "ease_to")
        self.assertFalse(self.service.select_stop(7))

    def test_initial_view_uses_first_stop(self):
        view = self.service.initial_view()
        self.assertEqual(view["center"], Position(*STOPS["liber-osaka"][:2]).to_dict())


class TestFocusHighlights(MapServiceTestCase):
    def test_highlight_is_idempotent(self):
        self.service.set_focused_day(0)
        first = highlighted(self.surface)
        self.service.set_focused_day(0)
        self.assertEqual(highlighted(self.surface), first)
        self.assertEqual(first, {"stop:liber-osaka", "poi:kix", "poi:dotonbori"})

    def test_switching_days_clears_previous_highlights(self):
        self.service.set_focused_day(0)
        self.service.set_focused_day(4)
        self.assertEqual(highlighted(self.surface), {"stop:kyoto-inn", "poi:fushimi"})
        self.service.clear_focused_day()
        self.assertEqual(highlighted(self.surface), set())
        self.assertIsNone(self.state.focused_day_index)

    def test_route_drawn_for_transit_leg(self):
        self.service.set_focused_day(0)
        self.assertTrue(self.surface.layers[TRANSIT_ROUTE_LAYER_ID])
        line = self.surface.sources[TRANSIT_ROUTE_SOURCE_ID]["features"][0]["geometry"]
        kix_lat, kix_lng = POIS["kix"][:2]
        stop_lat, stop_lng = STOPS["liber-osaka"][:2]
        self.assertEqual(line["coordinates"], [[kix_lng, kix_lat], [stop_lng, stop_lat]])

    def test_route_hidden_without_leg(self):
        self.service.set_focused_day(0)
        self.service.set_focused_day(1)
        self.assertFalse(self.surface.layers[TRANSIT_ROUTE_LAYER_ID])
        self.assertEqual(self.surface.sources[TRANSIT_ROUTE_SOURCE_ID]["features"], [])

    def test_focus_day_fits_bounds(self):
        bounds = self.service.focus_day(3)
        self.assertEqual(bounds["north"], STOPS["kyoto-inn"][0])
        fit = self.surface.history[-1]
        self.assertEqual((fit["op"], fit["padding"]), ("fit_bounds", 70))
        self.assertIsNone(self.service.focus_day(40))

    def test_day_without_resolvable_stop_frames_its_pois(self):
        self.state.days[4].stop_id = "ghost"
        bounds = self.service.focus_day(4)
        lat, lng = POIS["fushimi"][:2]
        self.assertEqual(bounds, {"north": lat, "south": lat, "east": lng, "west": lng})

    def test_rerender_keeps_focus(self):
        self.service.set_focused_day(4)
        self.service.render_overlays(fit=False)
        self.assertEqual(highlighted(self.surface), {"stop:kyoto-inn", "poi:fushimi"})

    def test_style_reload_rebuilds_route_layer(self):
        self.service.set_focused_day(3)
        self.surface.set_style_loaded(True, reset=True)
        self.assertFalse(self.surface.has_layer(TRANSIT_ROUTE_LAYER_ID))
        self.service.on_style_ready()
        self.assertTrue(self.surface.layers[TRANSIT_ROUTE_LAYER_ID])


class TestCommandSurface(unittest.TestCase):
    def test_commands_go_to_the_emitter_only(self):
        sent = []
        state = make_state()
        surface = CommandMapSurface(emit=sent.append)
        service = MapService(surface, state, DayFocusService(state, airport_poi_id=AIRPORT))
        for _ in range(20):
            service.render_overlays()
        self.assertEqual(len(surface.markers), len(STOPS) + len(POIS))
        self.assertFalse(hasattr(surface, "history"))
        self.assertTrue(any(c["op"] == "add_marker" for c in sent))


class TestStyleNotReady(MapServiceTestCase):
    style_loaded = False

    def test_route_is_a_no_op_until_ready(self):
        self.service.set_focused_day(0)
        self.assertFalse(self.service.apply_transit_route(None))
        self.assertNotIn("add_source", [c["op"] for c in self.surface.history])
        self.assertEqual(highlighted(self.surface), {"stop:liber-osaka", "poi:kix", "poi:dotonbori"})

        self.surface.set_style_loaded(True)
        self.service.on_style_ready()
        self.assertTrue(self.surface.layers[TRANSIT_ROUTE_LAYER_ID])

    def test_surface_rejects_source_before_load(self):
        with self.assertRaises(MapSurfaceError):
            self.surface.add_geojson_source("x", {})


class TestCoordinateValidation(unittest.TestCase):
    def test_ranges(self):
        self.assertTrue(MapService.validate_coordinates(34.0, 135.0))
        self.assertFalse(MapService.validate_coordinates(91.0, 0.0))
        self.assertFalse(MapService.validate_coordinates(0.0, -181.0))

    def test_unused_poi_marker_gets_no_highlight(self):
        state = make_state()
        state.pois["extra"] = Poi("extra", "poi:extra", "Extra", Position(35.0, 136.0))
        surface = CommandMapSurface()
        service = MapService(surface, state, DayFocusService(state, airport_poi_id=AIRPORT))
        service.render_overlays()
        service.set_focused_day(0)
        self.assertNotIn(HIGHLIGHT_CLASS, surface.marker_classes["poi:extra"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
