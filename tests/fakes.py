"""In-memory collaborators and a small Kansai/Tokyo itinerary fixture."""

import copy

from itinerary_map.api.models import ItineraryState
from itinerary_map.api.services.map_surface import CommandMapSurface
from itinerary_map.api.state_builder import build_state_from_records
from itinerary_map.api.storage import StorageError

AIRPORT = "kix"

STOPS = {
    "liber-osaka": (34.6657, 135.4323, "Hotel Liber Osaka", "Osaka"),
    "kyoto-inn": (35.0037, 135.7788, "Gion Inn", "Kyoto"),
    "tokyo-hotel": (35.6938, 139.7034, "Shinjuku Stay", "Tokyo"),
}

POIS = {
    "kix": (34.4320, 135.2304, "Kansai Airport"),
    "dotonbori": (34.6687, 135.5013, "Dotonbori"),
    "fushimi": (34.9671, 135.7727, "Fushimi Inari"),
    "kiyomizu": (34.9949, 135.7850, "Kiyomizu-dera"),
    "sensoji": (35.7148, 139.7967, "Senso-ji"),
}

# (date label, stop id, poi ids) for 25 Apr .. 6 May 2026
DAYS = [
    ("25 Apr 2026", "liber-osaka", ["kix", "dotonbori"]),
    ("26 Apr 2026", "liber-osaka", []),
    ("27 Apr 2026", "liber-osaka", ["dotonbori"]),
    ("28 Apr 2026", "kyoto-inn", []),
    ("29 Apr 2026", "kyoto-inn", ["fushimi"]),
    ("30 Apr 2026", "kyoto-inn", []),
    ("1 May 2026", "kyoto-inn", ["kiyomizu"]),
    ("2 May 2026", "tokyo-hotel", []),
    ("3 May 2026", "tokyo-hotel", ["sensoji"]),
    ("4 May 2026", "tokyo-hotel", []),
    ("5 May 2026", "tokyo-hotel", []),
    ("6 May 2026", "tokyo-hotel", ["kix"]),
]

_MONTHS = {"Apr": "04", "May": "05"}


def _day_id(label):
    day, month, year = label.split()
    return f"{year}-{_MONTHS[month]}-{int(day):02d}"


def make_records():
    records = []
    for stop_id, (lat, lng, name, city) in STOPS.items():
        records.append({"key": f"stop:{stop_id}", "name": name, "city": city, "lat": lat, "lng": lng})
    for poi_id, (lat, lng, name) in POIS.items():
        records.append({"key": f"poi:{poi_id}", "name": name, "location": "Japan", "lat": lat, "lng": lng})
    for label, stop_id, poi_ids in DAYS:
        records.append({
            "key": f"day:{_day_id(label)}",
            "date": label,
            "stopId": stop_id,
            "summary": "",
            "poiIds": list(poi_ids),
        })
    return records


def make_state(records=None):
    stops, pois, days = build_state_from_records(records if records is not None else make_records())
    return ItineraryState(stops=stops, pois=pois, days=days)


class FakeStorage:
    """Record store keyed by ``key``; ``fail_on`` lists 1-based upsert calls that fail."""

    def __init__(self, records=None, fail_on=None):
        self.records = {r["key"]: copy.deepcopy(r) for r in (records or [])}
        self.upserts = []
        self.fetches = 0
        self.fail_on = set(fail_on or ())
        self.fetch_error = None
        self.on_fetch = None
        self.on_upsert = None

    def fetch_collection(self, auth=None):
        self.fetches += 1
        if self.on_fetch is not None:
            result = self.on_fetch(self.fetches)
            if result is not None:
                return result
        if self.fetch_error is not None:
            raise self.fetch_error
        return [copy.deepcopy(r) for r in self.records.values()]

    def upsert_record(self, record):
        self.upserts.append(copy.deepcopy(record))
        if self.on_upsert is not None:
            self.on_upsert(record)
        if len(self.upserts) in self.fail_on:
            raise StorageError("Storage update failed: HTTP 500", status=500)
        self.records[record["key"]] = copy.deepcopy(record)
        return {"status": "ok"}


class FakeCredentials:
    def __init__(self, value=""):
        self.value = value

    def load(self):
        return self.value

    def save(self, value):
        self.value = str(value or "").strip()


class RecordingMapSurface(CommandMapSurface):
    """Command surface that also keeps every command it sent."""

    def __init__(self, emit=None):
        super().__init__(emit)
        self.history = []

    def _send(self, op, **payload):
        self.history.append(dict(payload, op=op))
        super()._send(op, **payload)
