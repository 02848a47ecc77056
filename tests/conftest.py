"""
Pytest configuration and fixtures.

Every session fixture runs the client against a FakeTarget over an
in-process transport pipe.
"""

import logging
import sys

import pytest

import remoteapp
from remoteapp import SerializerRegistry, create_pipe
from tests.harness.fake_target import FakeTarget, settle


def pytest_configure(config):
    """Configure pytest with custom settings."""
    log_level = logging.DEBUG if config.getoption("--debug-remoteapp") else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("remoteapp").setLevel(log_level)
    logging.getLogger("asyncio").setLevel(log_level)

    custom_log_file = config.getoption("--remoteapp-log-file")
    if custom_log_file:
        file_handler = logging.FileHandler(custom_log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
            )
        )
        logging.getLogger().addHandler(file_handler)


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--debug-remoteapp",
        action="store_true",
        default=False,
        help="Enable debug logging for remoteapp (shows wire traffic when REMOTEAPP_DEBUG_PROTOCOL=1)",
    )
    parser.addoption(
        "--remoteapp-log-file",
        action="store",
        default=None,
        help="Log remoteapp debug output to specified file",
    )


@pytest.fixture(autouse=True)
def clean_serializer_registry():
    SerializerRegistry.get_instance().clear()
    yield
    SerializerRegistry.get_instance().clear()


@pytest.fixture
async def target():
    """A FakeTarget answering the standard initialize/launch/close calls."""
    client_side, target_side = create_pipe()
    fake = FakeTarget(target_side, client_side)
    fake.install_defaults()
    fake.start()
    try:
        yield fake
    finally:
        await fake.stop()


@pytest.fixture
async def launcher(target):
    launcher = await remoteapp.connect(target.client_transport)
    try:
        yield launcher
    finally:
        await launcher._connection.close()


@pytest.fixture
async def app(launcher, target):
    application = await launcher.launch("/opt/target/app")
    await settle()
    return application
