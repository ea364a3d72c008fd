"""
Skillforge - skill compiler and deployer

Compiles skill directories into bounded stubs with a full-text search index,
and deploys them to the skill directories of coding agents.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("skillforge")
except PackageNotFoundError:
    __version__ = "0.4.0"

__all__ = [
    "__version__",
]
