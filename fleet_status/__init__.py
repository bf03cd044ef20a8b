"""Fleet status API: live fleet, agent and data-store state over HTTP."""

__version__ = "0.1.0"
