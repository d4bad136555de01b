import argparse
import json
import logging
import sys
from typing import Dict, List, Optional

from issueupdater.config import VERSION, is_fixed_versions_enabled
from issueupdater.integrations.jira.client import JiraClientError
from issueupdater.integrations.jira.config import ConfigurationError, load_step_config
from issueupdater.integrations.jira.validate import (
    format_validation_report,
    validate_step_config,
    validate_step_config_file,
)
from issueupdater.observability.log_setup import configure_logging
from issueupdater.step import run_update_step

logger = logging.getLogger(__name__)


def _parse_params(values: Optional[List[str]]) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for raw in values or []:
        name, sep, value = raw.partition("=")
        if not sep or not name.strip():
            raise argparse.ArgumentTypeError(f"build parameter must look like NAME=VALUE, got '{raw}'")
        params[name.strip()] = value
    return params


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="issueupdater")
    sub = p.add_subparsers(dest="cmd", required=True)

    update_p = sub.add_parser("update", help="Update the Jira issues matched by the configured JQL.")
    update_p.add_argument("--config", required=True, help="Path to the step config yaml")
    update_p.add_argument(
        "--param",
        action="append",
        metavar="NAME=VALUE",
        help="Build parameter; overrides an environment variable of the same name (repeatable)",
    )
    update_p.add_argument(
        "--apply-fixed-versions",
        action="store_true",
        help="Also set the configured fixed versions on every matching issue",
    )

    validate_p = sub.add_parser("validate-config", help="Validate a step config yaml.")
    validate_p.add_argument("--config", required=True, help="Path to the step config yaml")
    validate_p.add_argument("--check-jira", action="store_true", help="Also check Jira connectivity")
    validate_p.add_argument("--format", default="text", choices=["text", "json"])

    sub.add_parser("version", help="Print version.")
    return p


def main() -> int:
    # If no arguments provided, show help
    if len(sys.argv) == 1:
        sys.argv.append("--help")

    p = build_parser()
    args = p.parse_args()

    if args.cmd == "version":
        print(f"issueupdater {VERSION}")
        return 0

    if args.cmd == "validate-config":
        report = validate_step_config_file(args.config, check_jira=args.check_jira)
        if args.format == "json":
            print(json.dumps(report, indent=2, sort_keys=True))
        else:
            print(format_validation_report(report))
        return 0 if report.get("ok") else 1

    if args.cmd == "update":
        configure_logging()
        try:
            params = _parse_params(args.param)
        except argparse.ArgumentTypeError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 2
        try:
            config = load_step_config(args.config)
        except ConfigurationError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 2
        report = validate_step_config(config)
        if not report["ok"]:
            print(format_validation_report(report), file=sys.stderr)
            return 2
        try:
            passed = run_update_step(
                config,
                parameters=params,
                apply_fixed_versions=args.apply_fixed_versions or is_fixed_versions_enabled(),
            )
        except JiraClientError as exc:
            logger.error("Updating Jira issues failed, aborting: %s", exc)
            return 1
        return 0 if passed else 1

    return 2


if __name__ == "__main__":
    sys.exit(main())
