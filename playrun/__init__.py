"""playrun — supervise child programs and stream their output as messages."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("playrun")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
