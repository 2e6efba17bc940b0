"""Client synchronization core for the Civic Stage citizen platform."""

__version__ = "0.1.0"
