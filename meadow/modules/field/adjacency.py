"""
Adjacency Resolver

Picks the cell a spawned creature lands on: a uniformly random free cell in
the 8-connected (Moore) neighbourhood of the attracting consumable.

The grid is `grid_width` cells wide and `grid_size` cells long in total,
indexed row-major. Neighbourhoods are clipped at the edges and never wrap
from one row into the next.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, List, Optional

from meadow.core.logging.logger import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from meadow.core.config.economy import EconomyConfig
    from meadow.modules.field.occupancy import FieldOccupancyService

logger = get_logger(__name__)


def moore_neighbors(index: int, grid_width: int, grid_size: int) -> List[int]:
    """
    Cells touching `index` horizontally, vertically or diagonally.

    Example:
        >>> moore_neighbors(0, 10, 50)
        [1, 10, 11]
        >>> moore_neighbors(15, 10, 50)
        [4, 5, 6, 14, 16, 24, 25, 26]
    """
    if not 0 <= index < grid_size:
        return []

    row, col = divmod(index, grid_width)
    neighbors: List[int] = []
    for d_row in (-1, 0, 1):
        for d_col in (-1, 0, 1):
            if d_row == 0 and d_col == 0:
                continue
            r, c = row + d_row, col + d_col
            if c < 0 or c >= grid_width or r < 0:
                continue
            candidate = r * grid_width + c
            if candidate < grid_size:
                neighbors.append(candidate)
    return neighbors


class AdjacencyResolver:
    def __init__(self, economy: EconomyConfig, occupancy: FieldOccupancyService) -> None:
        self.economy = economy
        self.occupancy = occupancy

    def neighbors(self, index: int) -> List[int]:
        return moore_neighbors(index, self.economy.grid_width, self.economy.grid_size)

    async def pick_spawn_cell(
        self,
        session: AsyncSession,
        owner_id: int,
        origin: int,
        rng: random.Random,
    ) -> Optional[int]:
        """Random free neighbour of `origin`, or None when all are taken."""
        free = await self.occupancy.free_cells(session, owner_id, self.neighbors(origin))
        if not free:
            logger.debug(
                "No free neighbour for spawn",
                extra={"owner_id": owner_id, "origin": origin},
            )
            return None
        return rng.choice(free)
