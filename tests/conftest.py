import pytest

from trackfx import Engine, use_engine


@pytest.fixture(autouse=True)
def engine():
    """Every test gets its own engine, so no dependency leaks between tests."""
    with use_engine(Engine()) as engine:
        yield engine
