"""fleetkeeper command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``fleetkeeper`` script).
"""

from fleetkeeper.cli.main import cli

__all__ = ["cli"]
