"""
Resolve binary and config names to their values on this host and rewrite
<bin:NAME> / <conf:NAME> tokens in a rule document.
"""
import re
import shlex
import logging

import helper
from helper import verify_bin
from errors import UnresolvedBinaryError

logger = logging.getLogger(__name__)

BIN = "bin"
CONF = "conf"

_TOKEN = re.compile(r"<(?P<kind>[a-z]+):(?P<name>[A-Za-z0-9_.\-]+)>")


def find_executable(spec, processes=None):
    """
    Return the first candidate of a BinarySpec that is currently running,
    or None if none of them is.
    """
    if processes is None:
        processes = helper.get_process_lines()
    for candidate in spec.candidates:
        if verify_bin(candidate, processes):
            return candidate
    return None

def build_binary_map(specs, include_optional, strict=False, processes=None):
    """
    Build a name -> executable mapping.

    A required binary that is not running maps to its declared default so the
    rule document still substitutes cleanly. An optional binary that is not
    running is left out. With strict=True a required binary that is not
    running raises UnresolvedBinaryError instead.
    """
    if processes is None:
        processes = helper.get_process_lines()
    binmap = {}
    for spec in specs:
        found = find_executable(spec, processes)
        if found:
            binmap[spec.name] = found
        elif include_optional or spec.optional:
            logger.debug("Optional binary %s not running, omitted", spec.name)
        elif strict:
            raise UnresolvedBinaryError(
                f"{spec.name}: none of {', '.join(spec.candidates)} is running")
        else:
            binmap[spec.name] = spec.default
    return binmap

def build_config_map(specs):
    return {spec.name: spec.path for spec in specs}

def _quote(value):
    # multi-word executables such as "hyperkube apiserver" stay one shell word
    return shlex.quote(value)

def make_substitutions(text, kind, token_map):
    """
    Replace every <kind:NAME> token whose NAME is in token_map.
    Tokens of another kind, or with unknown names, are left untouched.
    """
    def replace(m):
        if m.group("kind") != kind:
            return m.group(0)
        value = token_map.get(m.group("name"))
        if not value:
            return m.group(0)
        return _quote(value)

    return _TOKEN.sub(replace, text)
