"""
worldsync -- MultiMC world save synchronization.

Keeps every world of a MultiMC instance consistent between the local
saves directory and a shared remote store. Each host uploads its own
proxy copy; one master copy per world is what every host downloads.

One invocation, one pass. Push after playing, pull before launching.
"""

import os

__version__ = "0.1.0"

SYNC_HOME = os.environ.get("MMC_SYNC_DIR", "~/.mmc-worldsync")
