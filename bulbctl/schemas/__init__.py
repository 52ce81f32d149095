"""JSON schemas for wire messages and the settings file."""
