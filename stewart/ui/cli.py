"""Command-line interface and main entry point."""

from __future__ import annotations
from typing import Iterable, List, Optional
import argparse
import json
import sys

from stewart.audit.session import AuditSession
from stewart.audit.store import AuditStore
from stewart.bank.loader import load_bank
from stewart.checks.models import CheckResult, SecureResult
from stewart.core.config import Cfg
from stewart.core.constants import APP_NAME, VERSION
from stewart.core.deps import Deps
from stewart.core.logging import LOG
from stewart.exceptions import StewartError

RULE = "-" * 46


def _render_check(result: CheckResult) -> str:
    check = result.check
    status = "PASS" if result.check_pass else "FINDING"
    lines = [
        f"[{status}] {check.id} ({result.backend.value})",
        f"  Description: {check.description}",
        f"  Probe Succeeded: {result.probe_succeeded}",
    ]
    if result.observed:
        lines.append(f"  Observed: {result.observed}")
    if result.timed_out:
        lines.append("  Timed Out: True")
    if result.error_kind:
        lines.append(f"  Error: {result.error_kind.value}")
    lines.extend(f"  ! {line}" for line in result.errors)
    return "\n".join(lines)


def _render_secure(result: SecureResult) -> str:
    status = "SECURED" if result.secured else "FAILED"
    lines = [f"[{status}] {result.id} ({result.backend.value})"]
    if result.error_kind:
        lines.append(f"  Error: {result.error_kind.value}")
    lines.extend(f"  ! {line}" for line in result.errors)
    return "\n".join(lines)


def _print_results(results: Iterable, render, as_json: bool) -> None:
    results = sorted(results, key=lambda r: r.id)
    if as_json:
        print(json.dumps([r.as_dict() for r in results], indent=2, ensure_ascii=False))
        return
    for result in results:
        print(render(result))
        print(RULE)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stewart",
        description=f"{APP_NAME} v{VERSION} - host compliance checks and remediation",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=VERSION)
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--store", help=f"Audit store file (default: {Cfg.STORE_FILE})")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    check = sub.add_parser("check", help="Run every non-exempt check in a bank")
    check.add_argument("bank", help="Vulnerability bank JSON")
    check.add_argument("--json", action="store_true", help="Print results as JSON")

    secure = sub.add_parser("secure", help="Remediate the findings of a previous check run")
    secure.add_argument("bank", help="Vulnerability bank JSON")
    secure.add_argument("run_id", help="Run ID printed by 'check'")
    secure.add_argument("--json", action="store_true", help="Print results as JSON")

    vuln = sub.add_parser("vuln", help="Show one check from a bank")
    vuln.add_argument("bank", help="Vulnerability bank JSON")
    vuln.add_argument("id", help="Check ID")

    exempt = sub.add_parser("exempt", help="Manage exempted check IDs")
    exempt.add_argument("action", choices=["add", "remove", "list"])
    exempt.add_argument("id", nargs="?", help="Check ID (add/remove)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command-line arguments (None = sys.argv)

    Returns:
        Exit code (0 = success)
    """
    ok, err_list = Cfg.check()
    if not ok:
        for err in err_list:
            print(f"ERROR: {err}", file=sys.stderr)
        return 1

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        LOG.verbose()
        LOG.d(f"Platform facilities: {Deps.summary()}")

    pruned = Cfg.cleanup_old()
    if any(pruned):
        LOG.d(f"Pruned {pruned[0]} backup(s) and {pruned[1]} rotated log(s)")

    try:
        if args.command == "check":
            session = AuditSession(AuditStore(args.store))
            run_id, results = session.check(args.bank)
            _print_results(results, _render_check, args.json)
            findings = sum(not r.check_pass for r in results)
            print(f"{findings} finding(s) in {len(results)} check(s)", file=sys.stderr)
            print(f"Check ID {run_id}", file=sys.stderr)
            return 0

        if args.command == "secure":
            session = AuditSession(AuditStore(args.store))
            results = session.secure(args.bank, args.run_id)
            _print_results(results, _render_secure, args.json)
            print(f"Secured check ID {args.run_id}", file=sys.stderr)
            return 0 if all(r.secured for r in results) else 2

        if args.command == "vuln":
            bank = load_bank(args.bank)
            check = bank.get(args.id)
            if check is None:
                print(f"ERROR: {args.id} is not in {args.bank}", file=sys.stderr)
                return 1
            for key, value in check.as_dict().items():
                print(f"{key}: {value}")
            return 0

        if args.command == "exempt":
            store = AuditStore(args.store)
            if args.action == "list":
                for cid in sorted(store.exempted_ids()):
                    print(cid)
                return 0
            if not args.id:
                parser.error(f"exempt {args.action} requires a check ID")
            if args.action == "add":
                changed = store.add_exemption(args.id)
                print(f"{args.id} exempted" if changed else f"{args.id} was already exempt")
            else:
                changed = store.remove_exemption(args.id)
                print(f"{args.id} no longer exempt" if changed else f"{args.id} was not exempt")
            return 0

        parser.print_help()
        return 0

    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 130
    except StewartError as exc:
        LOG.e(f"Fatal error: {exc}")
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:
        LOG.e(f"Fatal error: {exc}", exc=True)
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
