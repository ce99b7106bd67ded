import logging

import pytest


# cli.main() installs a stderr handler on the package logger; drop it after
# each test so later tests never write to a closed capture stream.
@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    package_logger = logging.getLogger("agentauth")
    for handler in package_logger.handlers[:]:
        if not isinstance(handler, logging.NullHandler):
            package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)
