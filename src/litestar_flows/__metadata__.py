"""Distribution metadata read from the installed ``litestar-flows`` package."""

from __future__ import annotations

from importlib.metadata import metadata, version

__all__ = ("__project__", "__version__")

_DISTRIBUTION = "litestar-flows"

__version__ = version(_DISTRIBUTION)
"""Installed version of the distribution."""
__project__ = metadata(_DISTRIBUTION)["Name"]
"""Distribution name as declared in ``pyproject.toml``."""
