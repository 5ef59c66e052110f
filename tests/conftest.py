"""Pytest configuration for psd-json tests."""

import os
from typing import Any

import pytest


@pytest.fixture
def workdir(tmp_path: Any, monkeypatch: Any) -> Any:
    """Run the test inside an empty temporary working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def sample_psd(tmp_path: Any) -> str:
    from .psd_json.utils import make_psd

    path = os.path.join(str(tmp_path), "sample.psd")
    make_psd(path)
    return path
