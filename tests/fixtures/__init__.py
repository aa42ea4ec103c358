"""Test fixtures and factories."""
