import unittest
from unittest import mock

from googlemaps.exceptions import ApiError

from itinerary_map.api.search import PlaceSearch, SearchCancelled, SearchError, SearchResult

UMEDA = {
    "name": "Umeda Sky Building",
    "formatted_address": "1-1-88 Oyodonaka, Kita Ward, Osaka",
    "geometry": {"location": {"lat": 34.7053, "lng": 135.4906}},
}


class TestPlaceSearch(unittest.TestCase):
    def setUp(self):
        self.client = mock.Mock()
        self.search = PlaceSearch(client=self.client)

    def test_results_are_mapped(self):
        self.client.places.return_value = {"results": [UMEDA, {"name": "No geometry"}]}
        results = self.search.search("new-poi", " umeda sky ")
        self.assertEqual(results, [SearchResult(
            name="Umeda Sky Building",
            location="1-1-88 Oyodonaka, Kita Ward, Osaka",
            lat=34.7053,
            lng=135.4906,
        )])
        self.assertEqual(self.client.places.call_args.kwargs["query"], "umeda sky")

    def test_blank_query_skips_request(self):
        self.assertEqual(self.search.search("new-poi", "   "), [])
        self.client.places.assert_not_called()

    def test_newer_search_cancels_older_one(self):
        inner = []

        def places(query, language=None):
            if query == "umeda":
                inner.append(self.search.search("new-poi", "umeda sky"))
            return {"results": [UMEDA]}

        self.client.places.side_effect = places
        with self.assertRaises(SearchCancelled):
            self.search.search("new-poi", "umeda")
        self.assertEqual(len(inner[0]), 1)

    def test_other_fields_are_independent(self):
        def places(query, language=None):
            if query == "umeda":
                self.search.search("day-3", "kyoto")
            return {"results": [UMEDA]}

        self.client.places.side_effect = places
        self.assertEqual(len(self.search.search("new-poi", "umeda")), 1)

    def test_api_errors_become_search_errors(self):
        self.client.places.side_effect = ApiError("REQUEST_DENIED")
        with self.assertRaises(SearchError):
            self.search.search("new-poi", "umeda")

    def test_missing_api_key(self):
        search = PlaceSearch()
        with mock.patch("itinerary_map.api.search.get_google_maps_config",
                        return_value={"api_key": "", "language": "en"}):
            with self.assertRaises(ValueError):
                search.search("new-poi", "umeda")


if __name__ == "__main__":
    unittest.main(verbosity=2)
