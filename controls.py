"""
Benchmark controls: a rule document parsed into groups of checks.

A check runs its audit command through the shell and judges the output
against its test items, the same way the per-rule helpers judge `ps -ef`
lines: look for `--flag`, pull out the value after `--flag=`, compare.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum

import yaml

from errors import ControlsError
from helper import run_command

logger = logging.getLogger(__name__)


class State(str, Enum):
    INFO = "INFO"
    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {State.PASS: 0, State.INFO: 1, State.WARN: 2, State.FAIL: 3}


def dominant(*states: State) -> State:
    """Return the most severe state, PASS if none are given."""
    return max(states, key=lambda s: s.severity, default=State.PASS)


@dataclass
class Summary:
    pass_: int = 0
    fail: int = 0
    warn: int = 0

    def add(self, state: State) -> None:
        if state == State.PASS:
            self.pass_ += 1
        elif state == State.FAIL:
            self.fail += 1
        elif state == State.WARN:
            self.warn += 1

    @property
    def total(self) -> int:
        return self.pass_ + self.fail + self.warn

    def as_dict(self) -> dict:
        return {"total_pass": self.pass_, "total_fail": self.fail, "total_warn": self.warn}


# --------------------------------------------------------- Tests ------------------------------------------------------------------------------------------

def _flag_value(output, flag):
    """
    Return the value given to flag in output (`--flag=value` or `--flag value`),
    "" if the flag is present without a value, or None if it is absent.
    """
    words = output.split()
    for i, word in enumerate(words):
        if word.startswith(flag + "="):
            return word[len(flag) + 1:]
        if word == flag:
            nxt = words[i + 1] if i + 1 < len(words) else ""
            return "" if nxt.startswith("-") else nxt
    return None

def _as_number(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None

COMPARE_OPS = ("eq", "noteq", "gt", "gte", "lt", "lte", "has", "nothave", "bitmask")

def compare(op, actual, expected):
    if isinstance(expected, bool):
        expected = str(expected).lower()
    expected = "" if expected is None else str(expected)
    if op == "eq":
        return actual == expected
    if op == "noteq":
        return actual != expected
    if op in ("gt", "gte", "lt", "lte"):
        a, e = _as_number(actual), _as_number(expected)
        if a is None or e is None:
            return False
        return {"gt": a > e, "gte": a >= e, "lt": a < e, "lte": a <= e}[op]
    if op == "has":
        return expected in actual
    if op == "nothave":
        return expected not in actual
    if op == "bitmask":
        # file mode must grant nothing beyond the mask, e.g. 644 or stricter
        try:
            return int(actual, 8) & ~int(expected, 8) == 0
        except ValueError:
            return False
    raise ControlsError(f"unknown compare op: {op!r}")


@dataclass
class AuditTest:
    flag: str | None = None
    is_set: bool = True
    op: str | None = None
    value: str | None = None

    @classmethod
    def from_dict(cls, raw):
        if not isinstance(raw, dict):
            raise ControlsError(f"test item must be a mapping, got {raw!r}")
        cmp = raw.get("compare") or {}
        if cmp and cmp.get("op") not in COMPARE_OPS:
            raise ControlsError(f"unknown compare op: {cmp.get('op')!r}")
        is_set = raw.get("set", True)
        if not isinstance(is_set, bool):
            raise ControlsError(f"test item 'set' must be true or false, got {is_set!r}")
        return cls(
            flag=raw.get("flag"),
            is_set=is_set,
            op=cmp.get("op"),
            value=cmp.get("value"),
        )

    def evaluate(self, output):
        if self.flag is None:
            actual = output.strip()
            present = bool(actual)
        else:
            actual = _flag_value(output, self.flag)
            present = actual is not None
        if not self.is_set:
            return not present
        if not present:
            return False
        if self.op is None:
            return True
        return compare(self.op, actual, self.value)


# --------------------------------------------------------- Tree ------------------------------------------------------------------------------------------

@dataclass
class Check:
    id: str
    text: str
    audit: str = ""
    remediation: str = ""
    scored: bool = True
    type: str = ""
    bin_op: str = "and"
    tests: list[AuditTest] = field(default_factory=list)
    state: State | None = None

    def run(self) -> State:
        """Execute the audit and set the check's state."""
        if self.type == "manual":
            self.state = State.WARN
            return self.state

        rc, out, err = run_command(self.audit, shell=True)
        if rc != 0 and not out:
            logger.debug("check %s audit failed (rc=%s): %s", self.id, rc, err)
            self.state = State.WARN
            return self.state

        if not self.tests:
            # nothing to judge the output against
            logger.debug("check %s has no tests", self.id)
            self.state = State.WARN
            return self.state

        results = [t.evaluate(out) for t in self.tests]
        passed = any(results) if self.bin_op == "or" else all(results)
        if passed:
            self.state = State.PASS
        elif self.scored:
            self.state = State.FAIL
        else:
            self.state = State.WARN
        logger.debug("check %s: %s", self.id, self.state.value)
        return self.state


@dataclass
class Group:
    id: str
    text: str
    checks: list[Check] = field(default_factory=list)


@dataclass
class Controls:
    id: str
    text: str
    type: str = ""
    groups: list[Group] = field(default_factory=list)

    @classmethod
    def parse(cls, data) -> Controls:
        """Parse a (substituted) rule document."""
        try:
            raw = yaml.safe_load(data)
        except yaml.YAMLError as e:
            raise ControlsError(f"unable to parse rule document: {e}") from e
        if not isinstance(raw, dict):
            raise ControlsError("rule document is empty or not a mapping")

        try:
            groups = [
                Group(
                    id=str(g["id"]),
                    text=str(g.get("text", "")),
                    checks=[_parse_check(c) for c in g.get("checks") or []],
                )
                for g in raw.get("groups") or []
            ]
            return cls(id=str(raw["id"]), text=str(raw.get("text", "")),
                       type=str(raw.get("type", "")), groups=groups)
        except (KeyError, TypeError, AttributeError) as e:
            raise ControlsError(f"malformed rule document: {e!r}") from e

    def run_group(self, *ids) -> Summary:
        """Run every check of the named groups, or of all groups if none are named."""
        summary = Summary()
        for g in self.groups:
            if ids and g.id not in ids:
                continue
            for c in g.checks:
                summary.add(c.run())
        return summary

    def run_checks(self, *ids) -> Summary:
        """Run the named checks wherever they appear."""
        summary = Summary()
        for g in self.groups:
            for c in g.checks:
                if c.id in ids:
                    summary.add(c.run())
        return summary

    def as_dict(self, summary: Summary | None = None) -> dict:
        doc = {
            "id": self.id,
            "text": self.text,
            "type": self.type,
            "groups": [
                {
                    "id": g.id,
                    "text": g.text,
                    "checks": [
                        {
                            "id": c.id,
                            "text": c.text,
                            "remediation": c.remediation,
                            "scored": c.scored,
                            "state": c.state.value if c.state else None,
                        }
                        for c in g.checks
                    ],
                }
                for g in self.groups
            ],
        }
        if summary is not None:
            doc.update(summary.as_dict())
        return doc

    def to_json(self, summary: Summary | None = None) -> str:
        try:
            return json.dumps(self.as_dict(summary), indent=4)
        except (TypeError, ValueError) as e:
            raise ControlsError(f"failed to output in JSON format: {e}") from e


def _parse_check(raw) -> Check:
    tests = raw.get("tests") or {}
    return Check(
        id=str(raw["id"]),
        text=str(raw.get("text", "")),
        audit=str(raw.get("audit", "")),
        remediation=str(raw.get("remediation", "")).strip(),
        scored=bool(raw.get("scored", True)),
        type=str(raw.get("type", "")),
        bin_op=str(tests.get("bin_op", "and")),
        tests=[AuditTest.from_dict(t) for t in tests.get("test_items") or []],
    )
