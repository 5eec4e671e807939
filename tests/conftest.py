from __future__ import annotations

import json
from pathlib import Path

import pytest

import app as app_module


@pytest.fixture
def config_data() -> dict:
    with open(app_module.DEFAULT_CONFIG, encoding='utf-8') as f:
        return json.load(f)


@pytest.fixture
def config_path(tmp_path: Path, config_data: dict) -> Path:
    path = tmp_path / 'contacts.json'
    path.write_text(json.dumps(config_data), encoding='utf-8')
    return path
