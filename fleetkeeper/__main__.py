"""Entry point for `python -m fleetkeeper`.

Usage:
    python -m fleetkeeper prune-images --target all --keep 5
    python -m fleetkeeper health-check --host web-01 --service nginx
"""

from __future__ import annotations

from fleetkeeper.cli import cli

cli(prog_name="fleetkeeper")
