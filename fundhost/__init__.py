"""fundhost: persistence and domain layer of a fiscal-sponsorship platform."""

__version__ = "0.1.0"
