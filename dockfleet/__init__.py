"""dockfleet: real-time container sessions and provisioning for remote engine hosts."""

from ._version import __version__

__all__ = ["__version__"]
