"""
Tests for the version lookup.
"""
import re
from importlib import metadata
from unittest.mock import patch

from userop_sdk import __version__
from userop_sdk.version import DISTRIBUTION, UNKNOWN_VERSION, get_version


def test_package_version_is_semver():
    assert re.match(r"^\d+\.\d+\.\d+", __version__)


@patch("userop_sdk.version.metadata.version", return_value="2.3.4")
def test_reads_distribution_metadata(mock_version):
    assert get_version() == "2.3.4"
    mock_version.assert_called_once_with(DISTRIBUTION)


@patch("userop_sdk.version.metadata.version", side_effect=metadata.PackageNotFoundError)
def test_uninstalled_source_tree(mock_version):
    assert get_version() == UNKNOWN_VERSION
