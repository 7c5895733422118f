"""Appointment booking and conflict engine for independent service businesses."""

__version__ = "0.4.0"
