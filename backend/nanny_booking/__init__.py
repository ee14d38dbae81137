"""Booking preference and preview pricing engine for the nanny marketplace."""
