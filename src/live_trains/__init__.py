"""Live train positions from the Portal Pasażera map feed."""

__version__ = "0.1.0"
