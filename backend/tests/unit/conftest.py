import pytest


@pytest.fixture(autouse=True)
def database() -> None:
    """Unit tests do not touch the database."""
