"""Calendar Kiosk - week-at-a-glance Google Calendar dashboard."""

__version__ = "0.1.0"
