from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pybaseline")
except PackageNotFoundError:  # pragma: no cover
    # Not installed, e.g. running from a source checkout
    __version__ = "0.0.0"
