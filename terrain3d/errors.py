"""Exception taxonomy for the terrain pipeline."""


class TerrainError(Exception):
    """Base class for all terrain pipeline errors."""


class FetchError(TerrainError):
    """An asset could not be retrieved (network or storage failure)."""


class DecodeError(TerrainError):
    """A byte stream is not a valid raster."""


class InvalidGridError(TerrainError, ValueError):
    """A grid has degenerate dimensions or a band-length mismatch."""
