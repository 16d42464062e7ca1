"""Matrix rooms as file-oriented buffers."""

from importlib.metadata import version as _v

try:
    __version__ = _v("matrixfs")
except Exception:
    __version__ = "0.0.0"
