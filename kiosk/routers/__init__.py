"""HTTP routers for Calendar Kiosk."""
