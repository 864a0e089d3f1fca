"""pixproxy: on-demand image transformation proxy."""

__version__ = "1.0.0"
