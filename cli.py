#!/usr/bin/env python3
"""
ExamChain CLI - Tamper-Evident Exam Papers and Fraud Detection

Usage:
    python cli.py generate-sets <vacancy_id>
    python cli.py lock <vacancy_id> <center_id>
    python cli.py unlock <vacancy_id>
    python cli.py get-sets <vacancy_id> [--content]
    python cli.py verify <paper_set_id>
    python cli.py analyze <vacancy_id> --results=<file>
    python cli.py get-alerts <vacancy_id>
    python cli.py ingest-results <file>
    python cli.py run-scenario [<name>|all]
"""

import argparse
import json
import logging
import sys

from examchain.config import Settings, configure_logging
from examchain.core import ExamChainError

logger = logging.getLogger("examchain.cli")

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_RETRYABLE = 2


def _print(data):
    print(json.dumps(data, indent=2, default=str))


def _service(args):
    from examchain.service import ExamChainService

    return ExamChainService.from_settings(args.settings, getattr(args, "results", None))


def cmd_generate_sets(args):
    """Generate paper sets A-E for a vacancy."""
    sets = _service(args).generate_sets(args.vacancy_id)
    _print([s.to_dict(include_content=False) for s in sets])
    return EXIT_OK


def cmd_lock(args):
    """Lock every paper set of a vacancy to a center."""
    sets = _service(args).lock(args.vacancy_id, args.center_id)
    _print([s.to_dict(include_content=False) for s in sets])
    return EXIT_OK


def cmd_unlock(args):
    """Administrative unlock."""
    sets = _service(args).unlock(args.vacancy_id)
    _print([s.to_dict(include_content=False) for s in sets])
    return EXIT_OK


def cmd_get_sets(args):
    """List paper sets for a vacancy."""
    sets = _service(args).get_sets(args.vacancy_id)
    _print([s.to_dict(include_content=args.content) for s in sets])
    return EXIT_OK


def cmd_verify(args):
    """Verify one paper set against its recorded fingerprint."""
    report = _service(args).verify(args.paper_set_id)
    _print({
        "paper_set_id": report.paper_set_id,
        "status": report.status.value,
        "expected_hash": report.expected_hash,
        "actual_hash": report.actual_hash
    })
    return EXIT_OK if report.valid else EXIT_REJECTED


def cmd_analyze(args):
    """Run fraud analysis over a results file."""
    alerts = _service(args).analyze(args.vacancy_id)
    _print([a.to_dict() for a in alerts])
    return EXIT_OK


def cmd_get_alerts(args):
    """List stored fraud alerts."""
    alerts = _service(args).get_alerts(args.vacancy_id)
    _print([a.to_dict() for a in alerts])
    return EXIT_OK


def cmd_ingest_results(args):
    """Validate a results file and anchor it with a batch receipt."""
    from examchain.fraud.ingest import batch_ingest

    args.settings.apply()
    with open(args.file, 'r', encoding='utf-8') as f:
        records = json.load(f)

    _, receipt = batch_ingest(records, args.settings.tenant_id)
    _print(receipt)
    return EXIT_OK if not receipt.get("errors") else EXIT_REJECTED


def cmd_run_scenario(args):
    """Run simulation scenarios."""
    from examchain.sim import run_all_scenarios, run_scenario

    args.settings.apply()
    if args.name == "all":
        outcomes = run_all_scenarios()
    else:
        outcomes = {args.name: run_scenario(args.name)}

    _print({
        name: {"passed": o.passed, "alerts": len(o.alerts), "violations": o.violations}
        for name, o in outcomes.items()
    })
    return EXIT_OK if all(o.passed for o in outcomes.values()) else EXIT_REJECTED


def build_parser():
    parser = argparse.ArgumentParser(
        description="ExamChain - Tamper-Evident Exam Papers and Fraud Detection"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # generate-sets
    p_gen = subparsers.add_parser("generate-sets", help="Generate paper sets A-E")
    p_gen.add_argument("vacancy_id", help="Vacancy identifier")
    p_gen.set_defaults(func=cmd_generate_sets)

    # lock
    p_lock = subparsers.add_parser("lock", help="Lock paper sets to an exam center")
    p_lock.add_argument("vacancy_id", help="Vacancy identifier")
    p_lock.add_argument("center_id", help="Exam center identifier")
    p_lock.set_defaults(func=cmd_lock)

    # unlock
    p_unlock = subparsers.add_parser("unlock", help="Administrative unlock")
    p_unlock.add_argument("vacancy_id", help="Vacancy identifier")
    p_unlock.set_defaults(func=cmd_unlock)

    # get-sets
    p_sets = subparsers.add_parser("get-sets", help="List paper sets")
    p_sets.add_argument("vacancy_id", help="Vacancy identifier")
    p_sets.add_argument("--content", action="store_true", help="Include paper content")
    p_sets.set_defaults(func=cmd_get_sets)

    # verify
    p_verify = subparsers.add_parser("verify", help="Verify a paper set's integrity")
    p_verify.add_argument("paper_set_id", help="Paper set id")
    p_verify.set_defaults(func=cmd_verify)

    # analyze
    p_analyze = subparsers.add_parser("analyze", help="Run fraud analysis")
    p_analyze.add_argument("vacancy_id", help="Vacancy identifier")
    p_analyze.add_argument("--results", required=True, help="JSON file with exam results")
    p_analyze.set_defaults(func=cmd_analyze)

    # get-alerts
    p_alerts = subparsers.add_parser("get-alerts", help="List fraud alerts")
    p_alerts.add_argument("vacancy_id", help="Vacancy identifier")
    p_alerts.set_defaults(func=cmd_get_alerts)

    # ingest-results
    p_ingest = subparsers.add_parser("ingest-results", help="Validate and anchor exam results")
    p_ingest.add_argument("file", help="JSON file with exam results")
    p_ingest.set_defaults(func=cmd_ingest_results)

    # run-scenario
    p_sim = subparsers.add_parser("run-scenario", help="Run simulation scenarios")
    p_sim.add_argument("name", nargs="?", default="all",
                       choices=["all", "BASELINE", "LEAK", "ANOMALY", "BOUNDARY"],
                       help="Scenario name or 'all'")
    p_sim.set_defaults(func=cmd_run_scenario)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_REJECTED

    try:
        args.settings = Settings.from_env()
        configure_logging(args.settings.log_level)
        return args.func(args)
    except ExamChainError as e:
        logger.error("%s: %s", type(e).__name__, e.message)
        _print({"error": type(e).__name__, "message": e.message, "retryable": e.retryable})
        return EXIT_RETRYABLE if e.retryable else EXIT_REJECTED


if __name__ == "__main__":
    sys.exit(main())
