"""Logging and metrics for fleetkeeper."""
