import logging

from shared.common_utils.logger import CorrelationIdFilter, DeviceModeLogger, logger


def make_record() -> logging.LogRecord:
    return logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)


def test_logger_is_singleton():
    assert DeviceModeLogger() is logger


def test_correlation_id_is_attached_to_records():
    """Test that records carry the id of the request being handled."""
    record = make_record()
    token = logger.set_correlation_id("req-7")
    try:
        CorrelationIdFilter(logger.correlation_id_var).filter(record)
        assert logger.get_correlation_id() == "req-7"
    finally:
        logger.reset_correlation_id(token)

    assert record.correlation_id == "req-7"
    assert logger.get_correlation_id() is None


def test_records_outside_requests_get_placeholder():
    record = make_record()
    CorrelationIdFilter(logger.correlation_id_var).filter(record)
    assert record.correlation_id == "-"
