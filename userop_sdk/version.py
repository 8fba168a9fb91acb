"""
Version of the installed userop-sdk distribution.
"""
from importlib import metadata

DISTRIBUTION = "userop-sdk"

# Reported when running from a source tree that was never installed
UNKNOWN_VERSION = "0.0.0+unknown"


def get_version(distribution: str = DISTRIBUTION) -> str:
    try:
        return metadata.version(distribution)
    except metadata.PackageNotFoundError:
        return UNKNOWN_VERSION


__version__ = get_version()
