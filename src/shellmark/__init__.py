"""shellmark - extract command output from shell-integration markers."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("shellmark")
except PackageNotFoundError:
    __version__ = "0.0.0"
