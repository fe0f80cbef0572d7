"""Shared helpers: license plates, date/time math, QR codes."""
