"""Tests for the output formatting system and the response bridge.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline and quiet/verbose rules
- JSON and plain rendering of data and tables
- format_engine_response status lines for engine responses
"""

from __future__ import annotations

import json

import httpx
import pytest

from cachegate import fallbacks
from cachegate.models import Classification
from cachegate.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)
from cachegate.response import extract_response_data, format_engine_response


@pytest.fixture()
def non_tty(monkeypatch):
    monkeypatch.setattr("cachegate.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    monkeypatch.setattr("cachegate.output._is_tty", lambda: True)
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("TERM", raising=False)


# ------------------------------------------------------------------ #
# Format resolution
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty):
        assert OutputManager().format == OutputFormat.RICH

    def test_auto_resolves_to_plain_when_tty_but_no_color(self, tty):
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_json_stays_json(self, tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color()

    def test_term_dumb_disables_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color()

    def test_normal_term_keeps_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert not _should_disable_color()


# ------------------------------------------------------------------ #
# Streams
# ------------------------------------------------------------------ #


class TestStreams:
    def test_data_to_stdout_diagnostics_to_stderr(self, capsys, non_tty):
        out = OutputManager(no_color=True)
        out.print_data("payload")
        out.info("note")
        out.warning("careful")
        out.error("broken")
        captured = capsys.readouterr()
        assert captured.out == "payload\n"
        assert "note" in captured.err
        assert "Warning: careful" in captured.err
        assert "Error: broken" in captured.err

    def test_quiet_keeps_warnings_and_errors(self, capsys, non_tty):
        out = OutputManager(no_color=True, quiet=True)
        out.info("note")
        out.success("done")
        out.warning("careful")
        out.error("broken")
        err = capsys.readouterr().err
        assert "note" not in err
        assert "done" not in err
        assert "careful" in err
        assert "broken" in err

    def test_debug_only_when_verbose(self, capsys, non_tty):
        OutputManager(no_color=True).debug("hidden")
        OutputManager(no_color=True, verbose=True).debug("shown")
        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "[debug] shown" in err


class TestRendering:
    def test_json_dict(self, capsys):
        OutputManager(format=OutputFormat.JSON).format_response({"a": 1})
        assert json.loads(capsys.readouterr().out) == {"a": 1}

    def test_json_string_body_is_parsed(self, capsys):
        OutputManager(format=OutputFormat.JSON).format_response('{"b": [1]}')
        assert json.loads(capsys.readouterr().out) == {"b": [1]}

    def test_plain_dict(self, capsys):
        OutputManager(format=OutputFormat.PLAIN).format_response({"a": 1, "b": "x"})
        assert capsys.readouterr().out == "a\t1\nb\tx\n"

    def test_table_json(self, capsys):
        OutputManager(format=OutputFormat.JSON).print_table(["Store", "Entries"], [["s", "2"]])
        assert json.loads(capsys.readouterr().out) == [{"Store": "s", "Entries": "2"}]

    def test_table_plain(self, capsys):
        OutputManager(format=OutputFormat.PLAIN).print_table(["Store", "Entries"], [["s", "2"]])
        assert capsys.readouterr().out == "Store\tEntries\ns\t2\n"


class TestGlobalInstance:
    def test_lazy_default(self):
        reset_output()
        assert isinstance(get_output(), OutputManager)

    def test_set_output(self):
        manager = OutputManager(format=OutputFormat.JSON)
        set_output(manager)
        assert get_output() is manager


# ------------------------------------------------------------------ #
# Engine response bridge
# ------------------------------------------------------------------ #


class TestFormatEngineResponse:
    def test_status_line_and_body(self, capsys):
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True))
        response = httpx.Response(200, text="hello")
        format_engine_response(response, Classification.TIMED_CACHE)
        captured = capsys.readouterr()
        assert captured.out == "hello\n"
        assert "HTTP 200 OK [default-timed-cache]" in captured.err

    def test_fallback_is_flagged(self, capsys):
        set_output(OutputManager(format=OutputFormat.JSON, no_color=True))
        format_engine_response(fallbacks.offline_json("down"), Classification.NETWORK_ONLY)
        captured = capsys.readouterr()
        assert "(offline fallback)" in captured.err
        assert json.loads(captured.out)["message"] == "down"

    def test_empty_body_prints_nothing(self, capsys):
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True))
        format_engine_response(fallbacks.service_unavailable())
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "HTTP 503" in captured.err

    def test_extract_binary(self):
        response = httpx.Response(200, content=b"\xff\xfe\x00", headers={"content-type": "image/png"})
        assert extract_response_data(response) == "<3 bytes of image/png>"
