import logging

import helper
from helper import stat_path
from errors import ConfigProbeError
from substitution import find_executable

logger = logging.getLogger(__name__)


def verify_node_type(profile, processes=None):
    """
    Check that the executables and config files expected for a role are present.

    Returns a list of warning messages: one per binary that is not running and
    one per config file that does not exist. Raises ConfigProbeError if a
    config path cannot be checked for any other reason (e.g. permission denied).
    processes is the process snapshot to judge binaries against.
    """
    warnings = []

    if processes is None:
        processes = helper.get_process_lines()
    for spec in profile.bins:
        if find_executable(spec, processes) is None:
            warnings.append(f"{spec.default} is not running")

    for spec in profile.confs:
        try:
            present = stat_path(spec.path)
        except OSError as e:
            raise ConfigProbeError(spec.path, e) from e
        if not present:
            warnings.append(f"Missing kubernetes config file: {spec.path}")

    for msg in warnings:
        logger.debug("verify %s: %s", profile.role.value, msg)
    return warnings
