import logging

import pytest

from dsbox.config import reload_config


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point dsbox at a throwaway data dir and drop DSBOX_* overrides."""
    import os

    for key in list(os.environ):
        if key.startswith("DSBOX_"):
            monkeypatch.delenv(key, raising=False)
    data_dir = tmp_path / "dsbox-data"
    monkeypatch.setenv("DSBOX_DATA_DIR", str(data_dir))
    config = reload_config()

    yield config

    # The CLI takes over the dsbox logger; hand it back to pytest.
    logger = logging.getLogger("dsbox")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    reload_config()
