"""Itinerary map: day-by-day travel plans overlaid on an interactive map."""

__version__ = "0.3.0"
