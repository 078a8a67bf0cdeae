from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

from .errors import PrintError

log = logging.getLogger("cafepos.printing")

DEFAULT_COMMAND = "lp -d {destination}"
DEFAULT_TIMEOUT_SECONDS = 10.0

PRINTED = "printed"
NOT_CONFIGURED = "not_configured"
FAILED = "failed"
TIMEOUT = "timeout"


@dataclass(frozen=True)
class PrintOutcome:
    status: str
    message: str

    @property
    def ok(self) -> bool:
        return self.status == PRINTED


def is_configured(destination: Optional[str]) -> bool:
    return bool(destination and destination.strip() and destination.strip().lower() != "none")


class PrintSink(Protocol):
    def send(self, destination: Optional[str], document: str) -> PrintOutcome: ...


class SpoolerPrintSink:
    """
    Hands rendered documents to the OS print spooler.

    One delivery attempt per document, bounded by `timeout`. `send` never
    raises: every failure comes back as a PrintOutcome because printer
    hardware going away must not fail the order that triggered the print.
    """

    def __init__(self, command: str = DEFAULT_COMMAND, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.command = command
        self.timeout = timeout

    def send(self, destination: Optional[str], document: str) -> PrintOutcome:
        if not is_configured(destination):
            return PrintOutcome(NOT_CONFIGURED, "Printer not configured.")
        dest = destination.strip()  # type: ignore[union-attr]
        try:
            self._deliver(dest, document)
        except subprocess.TimeoutExpired:
            log.warning("print to %s timed out after %ss", dest, self.timeout)
            return PrintOutcome(TIMEOUT, "Printing timeout reached.")
        except PrintError as e:
            log.warning("print to %s failed: %s", dest, e.message)
            return PrintOutcome(FAILED, f"Failed: {e.message}")
        except (OSError, ValueError) as e:
            log.error("print to %s could not start: %s", dest, e)
            return PrintOutcome(FAILED, f"System error: {e}")
        return PrintOutcome(PRINTED, f"Printed to {dest}")

    def _deliver(self, destination: str, document: str) -> None:
        argv = [part.replace("{destination}", destination) for part in shlex.split(self.command)]
        proc = subprocess.run(
            argv,
            input=document.encode("utf-8"),
            capture_output=True,
            timeout=self.timeout,
            check=False,
        )
        if proc.returncode != 0:
            err = proc.stderr.decode("utf-8", errors="replace").strip()
            raise PrintError(err or f"exit status {proc.returncode}")


@dataclass
class NullPrintSink:
    """Keeps documents in memory instead of printing; used when no spooler exists."""

    jobs: List[Tuple[str, str]] = field(default_factory=list)

    def send(self, destination: Optional[str], document: str) -> PrintOutcome:
        if not is_configured(destination):
            return PrintOutcome(NOT_CONFIGURED, "Printer not configured.")
        dest = destination.strip()  # type: ignore[union-attr]
        self.jobs.append((dest, document))
        return PrintOutcome(PRINTED, f"Printed to {dest}")


def make_print_sink(driver: str, command: str = DEFAULT_COMMAND, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> PrintSink:
    if (driver or "").lower() == "null":
        return NullPrintSink()
    return SpoolerPrintSink(command=command, timeout=timeout)
