import pytest
from click.testing import CliRunner

from cli.client import init_client


@pytest.fixture
def runner():
    yield CliRunner()


@pytest.fixture(autouse=True)
def fresh_cli_client():
    init_client.cache_clear()
    yield
    init_client.cache_clear()
