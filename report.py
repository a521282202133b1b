"""
    Report formatting: colored human-readable output or a JSON document.
"""
import sys
import logging

from controls import State, dominant
from errors import ControlsError, RenderError

logger = logging.getLogger(__name__)


class Colors:
    """Terminal colors for output"""

    BLUE = "\033[94m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    END = "\033[0m"


STATE_COLORS = {
    State.INFO: Colors.BLUE,
    State.PASS: Colors.GREEN,
    State.WARN: Colors.YELLOW,
    State.FAIL: Colors.RED,
}


class Printer:
    def __init__(self, out=None, color=True):
        self.out = out or sys.stdout
        self.color = color

    def colored(self, state, text):
        if not self.color:
            return text
        return f"{STATE_COLORS[state]}{text}{Colors.END}"

    def line(self, text=""):
        print(text, file=self.out)

    def tagged(self, state, text):
        """Print text prefixed with its [STATE] tag, the tag in the state's color."""
        self.line(f"{self.colored(state, f'[{state.value}]')} {text}")


def render(controls, summary, as_json=False, warnings=(), config_file=None, out=None, color=True):
    """
    Print the results of a run.

    JSON is produced only when requested and at least one check ran; in that
    case environment warnings go to the log instead of stdout so the document
    stays parseable. Otherwise the human report is printed.
    """
    printer = Printer(out, color)
    if as_json and summary.total > 0:
        for msg in warnings:
            logger.warning(msg)
        try:
            printer.line(controls.to_json(summary))
        except ControlsError as e:
            raise RenderError(str(e), summary) from e
        return

    for msg in warnings:
        printer.tagged(State.WARN, msg)
    pretty_print(printer, controls, summary, config_file)


def remediations(controls):
    """Return (id, remediation) for every check that ran and did not pass."""
    return [
        (c.id, c.remediation)
        for g in controls.groups
        for c in g.checks
        if c.state is not None and c.state != State.PASS
    ]


def pretty_print(printer, controls, summary, config_file=None):
    if config_file:
        printer.tagged(State.INFO, f"Using config file: {config_file}")

    printer.tagged(State.INFO, f"{controls.id} {controls.text}")
    for g in controls.groups:
        executed = [c for c in g.checks if c.state is not None]
        if not executed:
            continue
        printer.tagged(State.INFO, f"{g.id} {g.text}")
        for c in executed:
            printer.tagged(c.state, f"{c.id} {c.text}")

    printer.line()

    if summary.fail > 0 or summary.warn > 0:
        printer.line(printer.colored(State.WARN, "== Remediations =="))
        for check_id, text in remediations(controls):
            printer.line(f"{check_id} {text}")
        printer.line()

    res = State.PASS
    if summary.fail > 0:
        res = dominant(res, State.FAIL)
    if summary.warn > 0:
        res = dominant(res, State.WARN)

    printer.line(printer.colored(res, "== Summary =="))
    printer.line(f"{summary.pass_} checks PASS")
    printer.line(f"{summary.fail} checks FAIL")
    printer.line(f"{summary.warn} checks WARN")
