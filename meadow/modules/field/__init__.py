from .adjacency import AdjacencyResolver, moore_neighbors
from .occupancy import FieldOccupancyService

__all__ = ["AdjacencyResolver", "FieldOccupancyService", "moore_neighbors"]
