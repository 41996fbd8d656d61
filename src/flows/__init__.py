"""Prefect flows built on the gamepulse pipeline."""
