"""Tests for terminal inspection helpers."""

from rich.console import Console

from sample_types import Plain, Sample

from proxygen.compiler import Diagnostic, Severity
from proxygen.debug import (
    check_source,
    diagnostics_table,
    generate_source,
    show_diagnostics,
    show_source,
)
from proxygen.strategies import FunctionStrategy


def recording_console():
    return Console(record=True, width=120, color_system=None)


class TestGenerateSource:
    """Tests for generate_source."""

    def test_uses_default_strategy(self):
        source = generate_source(Plain)

        assert "return super().ping()" in source

    def test_prefix(self):
        assert "class MockPlainProxy(Plain):" in generate_source(Plain, prefix="Mock")


class TestCheckSource:
    """Tests for check_source."""

    def test_valid_source(self):
        assert check_source("m.PlainProxy", generate_source(Plain)) == []

    def test_invalid_source(self):
        (diagnostic,) = check_source("m.P", "class P(:\n")

        assert diagnostic.severity is Severity.ERROR


class TestShowDiagnostics:
    """Tests for diagnostic output."""

    def test_table_rows(self):
        table = diagnostics_table(
            [
                Diagnostic("invalid syntax", Severity.ERROR, line=3, column=7, code="SyntaxError"),
                Diagnostic("bad escape", Severity.WARNING, line=5, code="SyntaxWarning"),
            ]
        )

        assert table.row_count == 2

    def test_prints_messages(self):
        console = recording_console()
        show_diagnostics(
            [Diagnostic("invalid syntax", Severity.ERROR, line=3, code="SyntaxError")], console
        )

        text = console.export_text()
        assert "invalid syntax" in text
        assert "SyntaxError" in text

    def test_no_diagnostics(self):
        console = recording_console()
        show_diagnostics([], console)

        assert "No diagnostics" in console.export_text()


class TestShowSource:
    """Tests for show_source."""

    def test_prints_source(self):
        console = recording_console()

        source = show_source(Sample, console=console)

        text = console.export_text()
        assert "sample_types.SampleProxy" in text
        assert "class SampleProxy(Sample):" in text
        assert source == generate_source(Sample)

    def test_reports_broken_bodies(self):
        console = recording_console()

        show_source(Plain, FunctionStrategy(lambda op, call: "return ("), console=console)

        assert "Compile diagnostics" in console.export_text()
