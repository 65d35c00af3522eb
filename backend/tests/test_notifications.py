"""
Tests for notification sinks.
"""

import logging
from datetime import timedelta

from services.notifications import (
    EventBufferSink,
    FanOutSink,
    LoggingNotificationSink,
    format_duration,
)
from fakes import RecordingSink


def test_format_duration():
    assert format_duration(timedelta(seconds=5)) == "0:00:05"
    assert format_duration(timedelta(hours=2, minutes=3, seconds=4, milliseconds=900)) == "2:03:04"
    assert format_duration(timedelta(seconds=-3)) == "0:00:00"


def test_event_buffer_records_and_filters():
    sink = EventBufferSink()
    sink.log("info", "hello")
    sink.price_tick(101.0)
    sink.signal("BUY", 101.0)
    sink.status("RUNNING - BTCUSDT")

    kinds = [event.kind for event in sink.events()]
    assert kinds == ["log", "price", "signal", "status"]
    assert [event.payload for event in sink.events("signal")] == [{"kind": "BUY", "price": 101.0}]


def test_event_buffer_tracks_latest_values():
    sink = EventBufferSink()
    sink.status("RUNNING - ETHUSDT")
    sink.price_tick(2000.0)
    sink.last_signal("SELL")
    sink.performance_snapshot(3, 66.66, 2000.0, 0.0)
    sink.uptime(timedelta(minutes=1, seconds=2))
    sink.indicator_snapshot({"sma_short": 1.5})

    assert sink.latest["status"] == "RUNNING - ETHUSDT"
    assert sink.latest["price"] == 2000.0
    assert sink.latest["last_signal"] == "SELL"
    assert sink.latest["performance"]["trade_count"] == 3
    assert sink.latest["uptime"] == "0:01:02"
    assert sink.latest["indicators"] == {"sma_short": 1.5}


def test_event_buffer_is_bounded():
    sink = EventBufferSink(max_events=3)
    for i in range(5):
        sink.log("info", f"line {i}")
    assert [entry["message"] for entry in sink.export_logs()] == ["line 2", "line 3", "line 4"]


def test_export_and_clear_logs_keeps_other_events():
    sink = EventBufferSink()
    sink.log("error", "Failed to connect: boom")
    sink.price_tick(1.0)
    sink.log("warning", "Bot is not running.")

    exported = sink.export_logs()
    assert [(entry["level"], entry["message"]) for entry in exported] == [
        ("error", "Failed to connect: boom"),
        ("warning", "Bot is not running."),
    ]
    assert set(exported[0]) == {"timestamp", "level", "message"}

    assert sink.clear_logs() == 2
    assert sink.export_logs() == []
    assert [event.kind for event in sink.events()] == ["price"]


def test_event_to_dict():
    sink = EventBufferSink()
    sink.log("success", "Bot started successfully.")
    payload = sink.events()[0].to_dict()
    assert payload["kind"] == "log"
    assert payload["payload"] == {"level": "success", "message": "Bot started successfully."}
    assert "T" in payload["timestamp"]


def test_logging_sink_maps_levels(caplog):
    sink = LoggingNotificationSink(name="tickbot.test")
    with caplog.at_level(logging.DEBUG, logger="tickbot.test"):
        sink.log("success", "order filled")
        sink.log("warning", "PRICE ALERT")
        sink.log("error", "socket error")
        sink.log("signal", "BUY signal triggered")

    levels = [(record.levelno, record.getMessage()) for record in caplog.records]
    assert levels == [
        (logging.INFO, "[SUCCESS] order filled"),
        (logging.WARNING, "[WARNING] PRICE ALERT"),
        (logging.ERROR, "[ERROR] socket error"),
        (logging.INFO, "[SIGNAL] BUY signal triggered"),
    ]


def test_fan_out_forwards_to_every_sink():
    first, second = RecordingSink(), RecordingSink()
    sink = FanOutSink(first, second)
    sink.log("info", "hello")
    sink.status("STOPPED")
    sink.price_tick(5.0)
    sink.signal("SELL", 5.0)
    sink.last_signal("SELL")
    sink.performance_snapshot(1, 100.0, 5.0, 0.0)
    sink.uptime(timedelta(seconds=1))
    sink.indicator_snapshot({"bollinger_upper": 6.0, "bollinger_lower": 4.0})

    for child in (first, second):
        assert child.logs == [("info", "hello")]
        assert child.statuses == ["STOPPED"]
        assert child.prices == [5.0]
        assert child.signals == [("SELL", 5.0)]
        assert child.last_signals == ["SELL"]
        assert child.performance == [(1, 100.0, 5.0, 0.0)]
        assert child.uptimes == [timedelta(seconds=1)]
        assert child.indicators == [{"bollinger_upper": 6.0, "bollinger_lower": 4.0}]
