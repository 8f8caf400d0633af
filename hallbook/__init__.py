"""Hallbook: venue booking engine for event rentals and showings."""
