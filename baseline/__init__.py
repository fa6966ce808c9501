"""Top-level package for pybaseline."""

from ._version import __version__
