import os
from unittest import mock

import pytest

import buildfunctions
from buildfunctions import ClientConfig
from tests.helpers import (
    TEST_API_TOKEN,
    TEST_BASE_URL,
    TEST_GPU_BUILD_URL,
    FakePlatform,
)

API_TOKEN = os.environ.get("BUILDFUNCTIONS_PYTEST_API_TOKEN")


def pytest_collection_modifyitems(config, items):
    if API_TOKEN:
        return
    skip_integration = pytest.mark.skip(
        reason="Set BUILDFUNCTIONS_PYTEST_API_TOKEN to run integration tests"
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture()
def config():
    return ClientConfig(
        api_token=TEST_API_TOKEN,
        base_url=TEST_BASE_URL,
        gpu_build_url=TEST_GPU_BUILD_URL,
        part_size=10,
    )


@pytest.fixture()
def client(config):
    return buildfunctions.BuildfunctionsClient(config=config)


@pytest.fixture()
def platform():
    fake = FakePlatform({})
    with mock.patch(
        "buildfunctions.connection.Connection.make_request", side_effect=fake
    ):
        yield fake


@pytest.fixture(scope="session")
def CLIENT():
    return buildfunctions.BuildfunctionsClient(api_token=API_TOKEN)
