import os
import re
import shutil
import logging
import subprocess

logger = logging.getLogger(__name__)


# --------------------------------------------------------- Process table ------------------------------------------------------------------------------------------

def run_command(cmd, timeout_s=30, shell=False):
    """
    Run a command and return (returncode, stdout, stderr).
    A command that cannot be started returns 127 with the error as stderr.
    Output that is not valid UTF-8 is decoded with U+FFFD replacements.
    """
    try:
        p = subprocess.run(
            cmd,
            shell=shell,
            text=True,
            encoding="utf-8",
            errors="replace",
            capture_output=True,
            timeout=timeout_s
        )
    except FileNotFoundError as e:
        return 127, "", str(e)
    except subprocess.TimeoutExpired:
        return 124, "", f"timed out after {timeout_s}s"
    return p.returncode, (p.stdout or "").strip(), (p.stderr or "").strip()

def get_process_lines():
    """
    Get the command line of every running process from `ps -ef`.
    Returns a list of command strings (the CMD column only).
    """
    rc, out, err = run_command(["ps", "-ef"])
    if rc != 0:
        logger.warning("ps -ef failed (rc=%s): %s", rc, err)
        return []

    commands = []
    for line in out.splitlines()[1:]:
        # UID PID PPID C STIME TTY TIME CMD
        fields = line.split(None, 7)
        if len(fields) == 8:
            commands.append(fields[7])
    return commands

def _matches(command_line, process_name):
    """
    A process matches when its executable basename equals the first word of
    process_name and every further word appears among its arguments,
    e.g. "hyperkube apiserver".
    """
    wanted = process_name.split()
    args = command_line.split()
    if not wanted or not args:
        return False
    if os.path.basename(args[0]) != wanted[0]:
        return False
    return all(w in args[1:] for w in wanted[1:])

def verify_bin(process_name, processes=None):
    """
    Check whether an executable (optionally with expected arguments) is running.
    processes is a snapshot from get_process_lines(); a fresh one is taken
    when it is not given.
    Returns True or False.
    """
    if processes is None:
        processes = get_process_lines()
    return any(_matches(line, process_name) for line in processes)


# --------------------------------------------------------- Filesystem ------------------------------------------------------------------------------------------

def stat_path(path):
    """
    Check whether a path exists.
    Returns False only when the path is not there; any other OSError
    (permission denied, I/O error) is raised to the caller.
    """
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    return True


# --------------------------------------------------------- Kubernetes version ------------------------------------------------------------------------------------------

_VERSION_PATTERNS = [
    # Client Version: version.Info{Major:"1", Minor:"7", ...}
    r'{kind} Version: version\.Info\{{Major:"(\d+)", Minor:"(\d+)',
    # Client Version: v1.27.3
    r'{kind} Version: v(\d+)\.(\d+)',
]

def parse_kube_version(kind, output):
    """
    Extract the (major, minor) version of "Client" or "Server" from
    `kubectl version` output. Returns None if it is not present.
    """
    for pattern in _VERSION_PATTERNS:
        m = re.search(pattern.format(kind=kind), output)
        if m:
            return m.group(1), m.group(2)
    return None

def verify_kube_version(major, minor):
    """
    Compare the running Kubernetes client and server versions with the expected
    major.minor version. Returns a list of warning messages; never raises.
    """
    if shutil.which("kubectl") is None:
        return ["Kubernetes version check skipped: kubectl not found"]

    warnings = []
    rc, out, err = run_command(["kubectl", "version"])
    if rc != 0:
        warnings.append(f"Kubernetes version check skipped with error: {err or rc}")
        if not out:
            return warnings

    for kind in ("Client", "Server"):
        found = parse_kube_version(kind, out)
        if found is None:
            warnings.append(f"Unable to get {kind} version")
        elif found[0] != major:
            warnings.append(f"Unexpected {kind} major version {found[0]}")
        elif found[1] != minor:
            warnings.append(f"Unexpected {kind} minor version {found[1]}")
    return warnings
