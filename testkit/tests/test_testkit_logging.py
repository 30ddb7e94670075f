import json
import logging

from testkit.logging import JsonFormatter, PlainFormatter, bind, context, current_context, log_duration, unbind


def _record(msg="hello", **extra):
    record = logging.LogRecord("testkit.x", logging.INFO, __file__, 10, msg, (), None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_context_binding_is_scoped():
    bind(user="alice")
    with context(tx="0xabc", ignored=None):
        assert current_context()["tx"] == "0xabc"
        assert "ignored" not in current_context()
    assert current_context().get("user") == "alice"
    assert "tx" not in current_context()
    unbind("user")
    assert "user" not in current_context()


def test_json_formatter_merges_context_and_extras():
    out = json.loads(JsonFormatter().format(_record(ctx={"user": "bob"}, event="publish")))
    assert out["msg"] == "hello"
    assert out["level"] == "INFO"
    assert out["ctx"] == {"user": "bob"}
    assert out["event"] == "publish"


def test_plain_formatter_is_single_line():
    line = PlainFormatter().format(_record(ctx={"user": "bob"}))
    assert "\n" not in line
    assert "user=bob" in line


def test_log_duration_reports_phases(caplog):
    @log_duration("work", level=logging.INFO)
    def work(x):
        return x * 2

    with caplog.at_level(logging.INFO):
        assert work(21) == 42
    phases = [r.phase for r in caplog.records if getattr(r, "event", None) == "work"]
    assert phases == ["start", "finish"]
    assert work.__name__ == "work"


def test_harness_operations_are_logged(env, caplog):
    with caplog.at_level(logging.INFO, logger="testkit"):
        env.create_user("alice")
    assert any("created user alice" in r.getMessage() for r in caplog.records)
