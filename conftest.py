import shutil
from pathlib import Path

import pytest

from stres.config import get_config
from stres.engine import Engine

TEST_DATA_DIR = Path("data-tests")


@pytest.fixture(autouse=True)
def clean_test_data():
    """Wipe data-tests/ before every test."""
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    yield
    # leave data-tests around after tests for inspection; CI can ignore it


@pytest.fixture
def data_dir() -> Path:
    return TEST_DATA_DIR


@pytest.fixture
def engine() -> Engine:
    """A fresh engine with default config and the built-in bestiary."""
    return Engine(config=get_config())
