"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose modes
- JSON / plain / rich rendering of data, tables and YAML
- Markup escaping of diagnostic messages
- Pager fallback
- Global instance management
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from apiharmony import output as output_module
from apiharmony.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture()
def non_tty(monkeypatch):
    """Patch stdout.isatty() to return False."""
    monkeypatch.setattr("apiharmony.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    """Patch stdout.isatty() to return True."""
    monkeypatch.setattr("apiharmony.output._is_tty", lambda: True)


# ------------------------------------------------------------------ #
# OutputFormat resolution
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        mgr = OutputManager(format=OutputFormat.AUTO)
        assert mgr.format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        mgr = OutputManager(format=OutputFormat.AUTO)
        assert mgr.format == OutputFormat.RICH

    def test_auto_resolves_to_plain_when_tty_but_no_color(self, tty, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        mgr = OutputManager(format=OutputFormat.AUTO)
        assert mgr.format == OutputFormat.PLAIN

    def test_explicit_json_stays_json(self, tty):
        mgr = OutputManager(format=OutputFormat.JSON)
        assert mgr.format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb_disables_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term_keeps_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


# ------------------------------------------------------------------ #
# stdout / stderr discipline
# ------------------------------------------------------------------ #


class TestStdoutStderrDiscipline:
    @pytest.mark.parametrize("method", ["info", "success", "warning", "error", "suggest"])
    def test_diagnostics_go_to_stderr(self, capfd, non_tty, method):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        getattr(mgr, method)("diagnostic message")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "diagnostic message" in captured.err

    def test_data_goes_to_stdout(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_data("payload")
        captured = capfd.readouterr()
        assert captured.out.strip() == "payload"
        assert captured.err == ""

    def test_warning_and_error_prefixes(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.warning("careful")
        mgr.error("broken")
        err = capfd.readouterr().err
        assert "Warning: careful" in err
        assert "Error: broken" in err


class TestQuietAndVerbose:
    def test_quiet_suppresses_info_success_suggest(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.info("one")
        mgr.success("two")
        mgr.suggest("three")
        assert capfd.readouterr().err == ""

    def test_quiet_keeps_warning_and_error(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.warning("still shown")
        mgr.error("also shown")
        err = capfd.readouterr().err
        assert "still shown" in err
        assert "also shown" in err

    def test_debug_hidden_by_default(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.debug("trace")
        assert capfd.readouterr().err == ""

    def test_debug_prefix_with_verbose(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True)
        mgr.debug("trace")
        assert "[debug] trace" in capfd.readouterr().err
        assert mgr.is_verbose is True


class TestMarkupEscaping:
    def test_brackets_in_error_survive_rich_console(self, capfd, non_tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm")
        mgr = OutputManager(format=OutputFormat.PLAIN)
        mgr.error("key [bold] not found")
        assert "key [bold] not found" in capfd.readouterr().err

    def test_debug_prefix_rendered_literally(self, capfd, non_tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm")
        mgr = OutputManager(format=OutputFormat.PLAIN, verbose=True)
        mgr.debug("Inlining $ref schemas.yaml#/Pet")
        assert "[debug] Inlining $ref schemas.yaml#/Pet" in capfd.readouterr().err


# ------------------------------------------------------------------ #
# Data rendering
# ------------------------------------------------------------------ #


class TestFormatResponse:
    def test_json_dict(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.format_response({"title": "Petstore API", "paths": 2})
        assert json.loads(capfd.readouterr().out) == {"title": "Petstore API", "paths": 2}

    def test_json_is_indented(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.format_response({"a": 1})
        assert '  "a": 1' in capfd.readouterr().out

    def test_plain_dict_as_key_value(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.format_response({"name": "petstore", "tags": ["pets", "store"]})
        lines = capfd.readouterr().out.strip().split("\n")
        assert lines == ["name\tpetstore", "tags\tpets, store"]

    def test_plain_list_of_dicts(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.format_response([{"id": 1, "name": "Rex"}, {"id": 2, "name": "Tom"}])
        lines = capfd.readouterr().out.strip().split("\n")
        assert lines == ["1\tRex", "2\tTom"]

    def test_rich_dict_contains_content(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.RICH, no_color=True)
        mgr.format_response({"key": "value"})
        out = capfd.readouterr().out
        assert "key" in out
        assert "value" in out


class TestPrintTable:
    headers = ["Method", "Path"]
    rows = [["GET", "/pets"], ["POST", "/pets"]]

    def test_json_records(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.print_table(self.headers, self.rows)
        records = json.loads(capfd.readouterr().out)
        assert records == [
            {"Method": "GET", "Path": "/pets"},
            {"Method": "POST", "Path": "/pets"},
        ]

    def test_plain_tab_separated(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_table(self.headers, self.rows)
        lines = capfd.readouterr().out.strip().split("\n")
        assert lines == ["Method\tPath", "GET\t/pets", "POST\t/pets"]

    def test_rich_table(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.RICH, no_color=True)
        mgr.print_table(self.headers, self.rows, title="Endpoints")
        out = capfd.readouterr().out
        assert "Endpoints" in out
        assert "/pets" in out


class TestPrintYaml:
    def test_plain_prints_text_verbatim(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_yaml("openapi: 3.0.3\ninfo:\n  title: T\n")
        assert capfd.readouterr().out == "openapi: 3.0.3\ninfo:\n  title: T\n\n"

    def test_rich_highlights(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.RICH, no_color=True)
        mgr.print_yaml("openapi: 3.0.3\n")
        assert "openapi" in capfd.readouterr().out


# ------------------------------------------------------------------ #
# Pager
# ------------------------------------------------------------------ #


class TestPager:
    def test_no_pager_when_not_tty(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        with patch("apiharmony.output.subprocess.Popen") as popen:
            mgr.paged_output("text")
        popen.assert_not_called()
        assert "text" in capfd.readouterr().out

    def test_pager_used_in_tty(self, tty, monkeypatch):
        monkeypatch.setenv("PAGER", "cat")
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        proc = MagicMock()
        with patch("apiharmony.output.subprocess.Popen", return_value=proc) as popen:
            mgr.paged_output("long text")
        popen.assert_called_once()
        assert popen.call_args.args[0] == "cat"
        proc.communicate.assert_called_once_with(input="long text")

    def test_pager_disabled(self, capfd, tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, use_pager=False)
        with patch("apiharmony.output.subprocess.Popen") as popen:
            mgr.paged_output("text")
        popen.assert_not_called()

    def test_pager_failure_falls_back_to_stdout(self, capfd, tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        with patch("apiharmony.output.subprocess.Popen", side_effect=OSError("no pager")):
            mgr.paged_output("fallback text")
        assert "fallback text" in capfd.readouterr().out


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_get_output_creates_default(self):
        assert isinstance(get_output(), OutputManager)

    def test_set_output_replaces_global(self, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON)
        set_output(mgr)
        assert get_output() is mgr

    def test_reset_output(self, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON)
        set_output(mgr)
        reset_output()
        assert get_output() is not mgr

    def test_module_helpers_delegate(self, capfd, non_tty):
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True))
        output_module.info("hello")
        output_module.debug("details")
        output_module.format_response({"k": "v"})
        captured = capfd.readouterr()
        assert "hello" in captured.err
        assert "[debug] details" in captured.err
        assert "k\tv" in captured.out
