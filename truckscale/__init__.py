"""Top level package for the truck load monitor."""

from importlib import metadata as _metadata

try:  # pragma: no cover - metadata only available when installed
    __version__ = _metadata.version("truckscale")
except _metadata.PackageNotFoundError:  # pragma: no cover - editable installs
    __version__ = "0.0.0"

__all__ = ["__version__"]
