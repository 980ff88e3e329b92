"""
World Store: the simulation loop's handle on the live city.

Updated by: batch execution + simulation ticks
Queried by: observation publishing
"""

import threading
from typing import Optional

from city_bridge.models.world import World, create_world


class WorldStore:
    """
    In-memory holder for the single live world.
    The host simulation owns persistence; nothing here survives a restart.
    """

    def __init__(self, world: Optional[World] = None):
        self._lock = threading.Lock()
        self._world = world or create_world(32)

    @property
    def world(self) -> World:
        """Get the current world."""
        with self._lock:
            return self._world

    def replace(self, world: World) -> None:
        """Swap in the next world value."""
        with self._lock:
            self._world = world
