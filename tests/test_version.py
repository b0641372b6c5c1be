"""
Tests for the version module of the Canopy SDK.
"""
import importlib
import re
from importlib import metadata as importlib_metadata
from unittest.mock import mock_open, patch

import tomli

from canopy_sdk import __version__


def _not_installed(name):
    raise importlib_metadata.PackageNotFoundError(name)


def _reload():
    import canopy_sdk.version as vmod
    importlib.reload(vmod)
    return vmod.__version__


def test_version_format():
    """The version string follows semantic versioning"""
    assert re.match(r'^\d+\.\d+\.\d+', __version__)


@patch('importlib.metadata.version')
def test_version_from_metadata(mock_metadata_version):
    mock_metadata_version.return_value = "2.3.4"
    assert _reload() == "2.3.4"
    mock_metadata_version.assert_called_with("canopy-sdk")


@patch('importlib.metadata.version', side_effect=_not_installed)
@patch('pathlib.Path.open', new_callable=mock_open, read_data=b'[project]\nversion = "1.2.3"\n')
def test_version_from_pyproject(mock_open_file, mock_metadata_version):
    """When the package is not installed, pyproject.toml is read"""
    assert _reload() == "1.2.3"


def test_version_file_not_found(monkeypatch):
    monkeypatch.setattr(importlib_metadata, 'version', _not_installed)

    def _missing(*args, **kwargs):
        raise FileNotFoundError()

    monkeypatch.setattr('pathlib.Path.open', _missing)
    assert _reload() == "0.1.0"


def test_version_key_missing(monkeypatch):
    monkeypatch.setattr(importlib_metadata, 'version', _not_installed)
    monkeypatch.setattr('pathlib.Path.open', mock_open(read_data=b'[project]\nname = "canopy-sdk"\n'))
    assert _reload() == "0.1.0"


def test_version_toml_decode_error(monkeypatch):
    monkeypatch.setattr(importlib_metadata, 'version', _not_installed)
    monkeypatch.setattr('pathlib.Path.open', mock_open(read_data=b'not = [toml'))
    assert _reload() == "0.1.0"
