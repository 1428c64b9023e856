import logging

import pytest

from nameforge.logging_config import ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_nameforge_logger():
    """Undo handlers installed by setup_logger so tests stay independent."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def cache_file(tmp_path):
    return tmp_path / "cache" / "nameforge_cache.json"
