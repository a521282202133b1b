"""
Exceptions raised by the audit pipeline.

Every fatal condition derives from BenchError so the CLI can report it and
exit non-zero. Missing binaries and missing config files are not errors:
they are collected as warnings and the run continues.
"""


class BenchError(Exception):
    """Base class for conditions that abort the run."""


class UsageError(BenchError):
    pass


class ConfigError(BenchError):
    pass


class ConfigProbeError(BenchError):
    """A config path could not be checked for a reason other than not-found."""

    def __init__(self, path, cause):
        self.path = path
        self.cause = cause
        super().__init__(f"error looking for file {path}: {cause}")


class ControlsError(BenchError):
    pass


class UnresolvedBinaryError(BenchError):
    pass


class RenderError(BenchError):
    """Rendering failed after the checks ran; the summary is kept for reporting."""

    def __init__(self, message, summary):
        self.summary = summary
        super().__init__(message)
