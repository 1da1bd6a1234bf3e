"""imgpipel - batch image pipeline for web delivery."""

__version__ = "0.1.0"
