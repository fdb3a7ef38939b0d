"""TuniBus bus booking and fleet management backend."""

__version__ = "1.0.0"
