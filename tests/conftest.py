import pathlib
import site

import pytest
from pgadapter.adapters import DecoderRegistry

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
site.addsitedir(HERE)


@pytest.fixture(autouse=True)
def reset_registry():
    """Drop decoders registered by a test so each test sees the defaults."""
    DecoderRegistry._instance = None
    yield
    DecoderRegistry._instance = None


pytest_plugins = [
    'tests.fixtures.mocks',
    'tests.fixtures.entities',
    'tests.fixtures.postgres',
]
