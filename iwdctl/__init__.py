"""Control the iwd wireless daemon over D-Bus."""

__version__ = "0.1.0"
