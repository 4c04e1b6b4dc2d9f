"""Shelf Feed API: social feeds over a personal reading library."""
