from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

from identity_pool.core.errors import AcquireTimeoutError, PoolConfigError, Severity, StoreError
from identity_pool.core.logger import LOGGER_NAME, setup_logging
from identity_pool.core.ops_log import NullOpsLogger
from .helpers.log_assertions import assert_payload_redacted, read_ops_log


def test_error_codes_and_flags():
    assert PoolConfigError().code == "pool_config_error"
    assert PoolConfigError().severity == Severity.CRITICAL
    assert PoolConfigError().recoverable is False
    assert StoreError().recoverable is True
    assert AcquireTimeoutError(pool="p", timeout=1).context == {"pool": "p", "timeout": 1}


def test_error_str_and_dict_redact_context():
    e = StoreError("Identity store push failed.", url="http://x", api_key="sk-123")
    assert str(e) == "store_error: Identity store push failed."
    d = e.to_dict()
    assert d["severity"] == "ERROR"
    assert d["context"]["url"] == "http://x"
    assert d["context"]["api_key"] == "***REDACTED***"


def test_ops_log_redacts_details(ops, ops_path):
    ops.log(pool="p", event="identity.created", outcome="ok", details={"id": "a", "data": {"password": "hunter2"}})
    rows = read_ops_log(ops_path)
    assert rows[0]["pool"] == "p"
    assert rows[0]["details"]["id"] == "a"
    assert_payload_redacted(rows, "hunter2")


def test_null_ops_logger_writes_nothing(tmp_path):
    NullOpsLogger().log(pool="p", event="x", outcome="ok", details={})
    assert os.listdir(str(tmp_path)) == []


def test_setup_logging_is_idempotent(tmp_path):
    logger = logging.getLogger(LOGGER_NAME)
    saved = (list(logger.handlers), logger.level, logger.propagate)
    try:
        setup_logging(str(tmp_path))
        setup_logging(str(tmp_path))
        files = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        streams = [h for h in logger.handlers if type(h) is logging.StreamHandler]
        assert len(files) == 1
        assert len(streams) == 1
        logger.info("Identities p: a is being used.")
        files[0].flush()
        with open(os.path.join(str(tmp_path), "identity_pool.log"), "r", encoding="utf-8") as f:
            assert "a is being used." in f.read()
    finally:
        for h in logger.handlers:
            if h not in saved[0]:
                h.close()
        logger.handlers = saved[0]
        logger.setLevel(saved[1])
        logger.propagate = saved[2]
