"""MO Gallery API."""
