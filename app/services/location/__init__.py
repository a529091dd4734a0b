"""
Location resolution: address parsing, autocomplete session tokens and the
per-form workflow that turns typed text or device coordinates into a draft.
"""

from app.services.location.workflow import LocationBusyError, LocationState, LocationWorkflow

__all__ = ["LocationBusyError", "LocationState", "LocationWorkflow"]
