"""binlayout - Binary layout codec generator."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("binlayout")
except PackageNotFoundError:
    __version__ = "(local)"
