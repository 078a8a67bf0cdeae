from __future__ import annotations

import pytest

from apps.pos.app.printing import (
    FAILED,
    NOT_CONFIGURED,
    PRINTED,
    TIMEOUT,
    NullPrintSink,
    SpoolerPrintSink,
    is_configured,
    make_print_sink,
)


@pytest.mark.parametrize("dest", [None, "", "   ", "none", "NONE", "None "])
def test_none_means_not_configured(dest):
    assert not is_configured(dest)
    out = SpoolerPrintSink(command="cat").send(dest, "doc")
    assert out.status == NOT_CONFIGURED
    assert out.message == "Printer not configured."
    assert not out.ok


def test_successful_delivery():
    out = SpoolerPrintSink(command="cat").send("KITCHEN1", "<html></html>")
    assert out.ok
    assert out.message == "Printed to KITCHEN1"


def test_spooler_error_is_reported_not_raised():
    sink = SpoolerPrintSink(command="sh -c 'echo no such printer {destination} >&2; exit 3'")
    out = sink.send("P9", "doc")
    assert out.status == FAILED
    assert out.message == "Failed: no such printer P9"


def test_nonzero_exit_without_stderr():
    out = SpoolerPrintSink(command="false").send("P1", "doc")
    assert out.status == FAILED
    assert out.message == "Failed: exit status 1"


def test_slow_spooler_times_out():
    out = SpoolerPrintSink(command="sleep 5", timeout=0.2).send("P1", "doc")
    assert out.status == TIMEOUT
    assert out.message == "Printing timeout reached."


def test_missing_spooler_binary():
    out = SpoolerPrintSink(command="definitely-not-a-print-spooler -d {destination}").send("P1", "doc")
    assert out.status == FAILED
    assert out.message.startswith("System error:")


def test_null_sink_records_jobs():
    sink = make_print_sink("null")
    assert isinstance(sink, NullPrintSink)
    assert sink.send("none", "skipped").status == NOT_CONFIGURED
    assert sink.send(" FRONT ", "receipt").status == PRINTED
    assert sink.jobs == [("FRONT", "receipt")]


def test_default_driver_uses_spooler():
    sink = make_print_sink("lp", command="lp -d {destination}", timeout=3)
    assert isinstance(sink, SpoolerPrintSink)
    assert sink.timeout == 3
