import pytest

from bucketfs.logs import (
    LogBuffer,
    LogRecord,
    append_log,
    clear_logs,
    configure_logging,
    list_logs,
    log_capacity,
)


def test_logs_are_returned_newest_first():
    append_log("info", "first")
    append_log("error", "second", path="a/")

    logs = list_logs()

    assert [r.message for r in logs] == ["second", "first"]
    assert logs[0].details == {"path": "a/"}
    assert logs[0].to_dict()["level"] == "error"


def test_default_capacity_drops_oldest():
    assert log_capacity() == 500
    for i in range(510):
        append_log("info", f"event {i}")

    logs = list_logs(limit=None)

    assert len(logs) == 500
    assert logs[0].message == "event 509"
    assert logs[-1].message == "event 10"


def test_limit():
    for i in range(5):
        append_log("info", f"event {i}")

    assert [r.message for r in list_logs(limit=2)] == ["event 4", "event 3"]


def test_non_positive_or_invalid_limit_falls_back_to_default():
    for i in range(150):
        append_log("info", f"event {i}")

    assert len(list_logs(limit=0)) == 100
    assert len(list_logs(limit=-3)) == 100
    assert len(list_logs(limit="abc")) == 100
    assert [r.message for r in list_logs(limit="2")] == ["event 149", "event 148"]


def test_clear_logs():
    append_log("info", "x")
    clear_logs()
    assert list_logs() == []


def test_resize_keeps_newest():
    buffer = LogBuffer(capacity=5)
    for i in range(5):
        buffer.append(LogRecord(level="info", message=str(i)))
    buffer.resize(2)

    assert buffer.capacity == 2
    assert len(buffer) == 2
    assert [r.message for r in buffer.list()] == ["4", "3"]


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        LogBuffer(capacity=0)


def test_configure_logging_resizes_process_buffer():
    try:
        configure_logging("DEBUG", capacity=3)
        for i in range(4):
            append_log("info", str(i))
        assert [r.message for r in list_logs()] == ["3", "2", "1"]
    finally:
        configure_logging("INFO", capacity=500)
