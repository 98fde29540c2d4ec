"""fleetkeeper: retention enforcement and health checking for infrastructure fleets."""

__version__ = "0.1.0"
