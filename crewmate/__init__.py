"""CrewMate layover engine: crew matching, connections, plans and notifications."""

__version__ = "1.0.0"
