# -*- coding: utf-8 -*-

import logging

import pytest

from adam.log import setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging(root_logger, capsys):
    setup_logging("debug")
    logging.getLogger("adam.filestore").debug("hello %s", "there")

    out = capsys.readouterr().out
    assert "| DEBUG    | adam.filestore - hello there" in out
    assert len(root_logger.handlers) == 1


def test_setup_logging_unknown_level(root_logger):
    setup_logging("chatty")

    assert root_logger.level == logging.INFO
