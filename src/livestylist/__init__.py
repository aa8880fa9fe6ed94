"""LiveStylist — realtime AI stylist backend."""

__version__ = "0.3.0"
