"""Voice mock-interview service: question generation, voice conversation engine and scored feedback."""

__version__ = "1.0.0"
