"""Register of fishing clients, locations, statuses and applications, served over HTTP."""

__version__ = "0.1.0"