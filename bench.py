"""
    Main entry point: audit this node against the benchmark for its role.
"""
import sys
import logging
import argparse

import helper
from controls import Controls
from errors import BenchError, ControlsError, RenderError, UsageError
from helper import verify_kube_version
from profiles import Role, find_cfg_dir, load_config, resolve
from report import render
from substitution import BIN, CONF, build_binary_map, build_config_map, make_substitutions
from verify import verify_node_type

logger = logging.getLogger(__name__)


def parse_ids(text):
    """Split a comma separated id list, keeping order and duplicates."""
    return [part.strip() for part in (text or "").split(",") if part.strip()]

def run_selection(controls, group_list="", check_list=""):
    """
    Run all groups, the named groups, or the named checks.
    Naming both groups and checks is a usage error and nothing runs.
    """
    groups = parse_ids(group_list)
    checks = parse_ids(check_list)
    if groups and checks:
        raise UsageError("group option and check option can't be used together")
    if groups:
        return controls.run_group(*groups)
    if checks:
        return controls.run_checks(*checks)
    return controls.run_group()

def load_controls(profile, binmap, extrasmap, confmap):
    """Read the role's rule document, substitute tokens and parse it."""
    try:
        text = profile.controls_file.read_text(encoding="utf-8")
    except OSError as e:
        raise ControlsError(f"error opening {profile.role.value} controls file: {e}") from e

    text = make_substitutions(text, BIN, binmap)
    text = make_substitutions(text, BIN, extrasmap)
    text = make_substitutions(text, CONF, confmap)

    try:
        return Controls.parse(text)
    except ControlsError as e:
        raise ControlsError(f"error setting up {profile.role.value} controls: {e}") from e

def run_checks(config, role, group_list="", check_list="", as_json=False, strict=False,
               color=True, out=None):
    """Audit the node for one role and print the report. Returns the Summary."""
    # Conflicting selectors are rejected before the host is inspected.
    if parse_ids(group_list) and parse_ids(check_list):
        raise UsageError("group option and check option can't be used together")

    profile = resolve(config, role)

    # One process table snapshot for both the token maps and the verifier.
    processes = helper.get_process_lines()
    binmap = build_binary_map(profile.bins, include_optional=False, strict=strict,
                              processes=processes)
    extrasmap = build_binary_map(config.optional_bins, include_optional=True,
                                 processes=processes)
    confmap = build_config_map(profile.confs + config.optional_confs)
    logger.debug("bins: %s extras: %s confs: %s", binmap, extrasmap, confmap)

    warnings = verify_kube_version(*config.kube_version)
    warnings += verify_node_type(profile, processes)

    controls = load_controls(profile, binmap, extrasmap, confmap)
    summary = run_selection(controls, group_list, check_list)

    render(controls, summary, as_json=as_json, warnings=warnings,
           config_file=config.config_file, out=out, color=color)
    return summary


def build_parser():
    parser = argparse.ArgumentParser(
        prog="kube-node-audit",
        description="Check whether a Kubernetes node is deployed securely.",
    )
    parser.add_argument("role", choices=[r.value for r in Role],
                        help="kind of node to audit")
    selection = parser.add_argument_group("selection")
    selection.add_argument("-g", "--group", default="",
                           help="comma separated list of group ids to run")
    selection.add_argument("-c", "--check", default="",
                           help="comma separated list of check ids to run")
    parser.add_argument("--json", action="store_true", help="print results as JSON")
    parser.add_argument("--strict", action="store_true",
                        help="fail if a required binary is not running")
    parser.add_argument("--config-dir", help="directory holding config.yaml and the controls files")
    parser.add_argument("--version", dest="kube_version",
                        help="expected Kubernetes version, MAJOR.MINOR")
    parser.add_argument("--no-color", action="store_true", help="disable colored output")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(find_cfg_dir(args.config_dir), args.kube_version)
        run_checks(
            config,
            Role(args.role),
            group_list=args.group,
            check_list=args.check,
            as_json=args.json,
            strict=args.strict,
            color=not args.no_color,
        )
    except RenderError as e:
        s = e.summary
        print(f"error: {e}", file=sys.stderr)
        print(f"{s.pass_} checks PASS, {s.fail} checks FAIL, {s.warn} checks WARN", file=sys.stderr)
        return 1
    except BenchError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
