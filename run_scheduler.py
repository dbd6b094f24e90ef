#!/usr/bin/env python3
"""
SceneScheduler CLI — assign persons to (scene, role) slots across rounds.

Parameters come from a JSON file (--config), a workbook PARAMETERS sheet
(--workbook) or flags (-n / -r); flags override file values.

Usage:
  # Step 1: Create / refresh the PARAMETERS sheet of a workbook
  python run_scheduler.py setup --workbook params.xlsx -n 16 -r 4

  # Step 2 (optional): Dry-run — check the parameters without searching
  python run_scheduler.py check --workbook params.xlsx

  # Step 3: Solve and write the schedule
  python run_scheduler.py solve --workbook params.xlsx --out schedule.xlsx --time-limit 60
  python run_scheduler.py solve -n 24 -r 4 --mode minimize --workers 4
  python run_scheduler.py solve -n 16 -r 4 --backend cpsat --disable priority_ordering

  # Step 4: Re-check a written schedule
  python run_scheduler.py validate --workbook params.xlsx --schedule schedule.xlsx
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from scene_scheduler.cpsat_model import solve_cpsat
from scene_scheduler.models import ConfigurationError, MODES, OPTIONAL_RULES
from scene_scheduler.parse_inputs import load_config
from scene_scheduler.search import VALUE_ORDERS, solve
from scene_scheduler.validate import (
    check_configuration,
    check_idempotent,
    validate_assignments,
)
from scene_scheduler.workbook_sheets import setup_parameters_sheet
from scene_scheduler.write_schedule import format_table, read_schedule, write_schedule


def _resolve(p: str) -> Path:
    pp = Path(p)
    if pp.is_absolute():
        return pp
    return Path.cwd() / pp


def _config_from_args(args):
    overrides = {
        "n": args.n,
        "r": args.r,
        "scenes": getattr(args, "scenes", None),
        "mode": getattr(args, "mode", None),
    }
    disabled = getattr(args, "disable", None) or []
    if disabled:
        overrides["rule_flags"] = {rule: False for rule in disabled}
    config_path = str(_resolve(args.config)) if getattr(args, "config", None) else None
    workbook_path = str(_resolve(args.workbook)) if getattr(args, "workbook", None) else None
    if not (config_path or workbook_path or (args.n and args.r)):
        raise ConfigurationError("give --config, --workbook, or both -n and -r")
    return load_config(config_path, workbook_path, overrides)


def _print_config(config):
    lo, hi = config.bounds
    print(f"  Persons: {config.n}")
    print(f"  Rounds: {config.r}")
    print(f"  Scenes: {config.scenes} ({config.slot_count} slots, {lo}..{hi} per slot)")
    print(f"  Mode: {config.mode}")
    print(f"  Rules: {', '.join(config.active_rules())}")


def _progress(count, objective):
    if objective is None:
        print(f"Solution {count} found")
    else:
        print(f"Solution {count} found: objective value = {objective}")


def cmd_setup(args):
    """Add/refresh the PARAMETERS sheet in the workbook."""
    wb_path = str(_resolve(args.workbook))
    config = None
    if args.n and args.r:
        config = load_config(overrides={"n": args.n, "r": args.r, "scenes": args.scenes})
    print(f"Setting up PARAMETERS in: {wb_path}")
    setup_parameters_sheet(wb_path, config)
    print("Done.")


def cmd_check(args):
    """Validate parameters without solving."""
    config = _config_from_args(args)
    _print_config(config)
    ok, msgs = check_configuration(config)
    if ok:
        print("\nConfiguration: OK")
        return
    print("\nConfiguration invalid:")
    for m in msgs:
        print(f"  {m}")
    sys.exit(1)


def cmd_solve(args):
    """Run the engine and print / write the schedule."""
    config = _config_from_args(args)
    _print_config(config)

    limit = args.time_limit if args.time_limit > 0 else None
    print(f"\nSolving with {args.backend} (time limit {limit or 'none'}s)...")
    try:
        if args.backend == "cpsat":
            result = solve_cpsat(
                config,
                time_limit_seconds=limit,
                workers=args.workers,
                seed=args.seed,
                on_solution=_progress,
            )
        else:
            result = solve(
                config,
                time_limit_seconds=limit,
                node_limit=args.node_limit,
                workers=args.workers,
                value_order=args.value_order,
                seed=args.seed,
                on_solution=_progress,
                restarts=not args.no_restarts,
            )
    except ConfigurationError as exc:
        print("\nConfiguration invalid:")
        for m in exc.messages:
            print(f"  {m}")
        sys.exit(2)

    print()
    print(format_table(result, config))
    print(f"\n  Nodes: {result.nodes}  Solutions: {result.solutions}  "
          f"Elapsed: {result.elapsed_seconds:.2f}s")

    if result.found:
        valid, violations = validate_assignments(result.matrix, config)
        if valid:
            print("  Validation: OK")
        else:
            print(f"  Validation: {len(violations)} issue(s)")
            for v in violations[:15]:
                print(f"    {v}")
            if len(violations) > 15:
                print(f"    ... and {len(violations) - 15} more")

    if args.out:
        out_path = str(_resolve(args.out))
        print(f"\nWriting schedule to: {out_path}")
        write_schedule(out_path, result, config)

    if not result.found:
        sys.exit(1)
    print("Done.")


def cmd_validate(args):
    """Re-check a SCHEDULE workbook against the rules."""
    config = _config_from_args(args)
    schedule_path = str(_resolve(args.schedule))
    print(f"Reading: {schedule_path}")
    try:
        matrix = read_schedule(schedule_path, config)
    except ValueError as exc:
        print(f"  Unreadable schedule: {exc}")
        sys.exit(1)

    valid, violations = validate_assignments(matrix, config)
    if valid:
        valid, violations = check_idempotent(matrix, config)
    if valid:
        print("  Validation: OK")
        return
    print(f"  Validation: {len(violations)} issue(s)")
    for v in violations:
        print(f"    {v}")
    sys.exit(1)


def _add_param_args(p, with_rules=True):
    p.add_argument("--config", help="JSON parameter file")
    p.add_argument("--workbook", help="Workbook with a PARAMETERS sheet")
    p.add_argument("-n", type=int, default=None, help="Number of persons")
    p.add_argument("-r", type=int, default=None, help="Number of rounds")
    p.add_argument("--scenes", type=int, default=None)
    if with_rules:
        p.add_argument("--mode", choices=MODES, default=None)
        p.add_argument("--disable", action="append", choices=OPTIONAL_RULES,
                       help="Switch off an optional rule (repeatable)")


def main():
    parser = argparse.ArgumentParser(
        description="SceneScheduler — round-robin scene/role assignment",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", help="Command")

    # setup
    p_setup = sub.add_parser("setup", help="Add/refresh the PARAMETERS sheet")
    p_setup.add_argument("--workbook", required=True, help="Workbook path")
    p_setup.add_argument("-n", type=int, default=None)
    p_setup.add_argument("-r", type=int, default=None)
    p_setup.add_argument("--scenes", type=int, default=None)

    # check
    p_check = sub.add_parser("check", help="Validate parameters only")
    _add_param_args(p_check)

    # solve
    p_solve = sub.add_parser("solve", help="Run the engine and produce a schedule")
    _add_param_args(p_solve)
    p_solve.add_argument("--backend", choices=["search", "cpsat"], default="search")
    p_solve.add_argument("--out", default=None, help="Output workbook (.xlsx)")
    p_solve.add_argument("--time-limit", type=float, default=60, help="Seconds; 0 for no limit")
    p_solve.add_argument("--node-limit", type=int, default=None)
    p_solve.add_argument("--workers", type=int, default=1)
    p_solve.add_argument("--value-order", choices=VALUE_ORDERS, default="least_loaded")
    p_solve.add_argument("--seed", type=int, default=None)
    p_solve.add_argument("--no-restarts", action="store_true",
                         help="Keep the engine on one dive instead of restarting")

    # validate
    p_val = sub.add_parser("validate", help="Re-check a written schedule")
    _add_param_args(p_val)
    p_val.add_argument("--schedule", required=True, help="Workbook with a SCHEDULE sheet")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    dispatch = {
        "setup": cmd_setup,
        "check": cmd_check,
        "solve": cmd_solve,
        "validate": cmd_validate,
    }
    try:
        dispatch[args.command](args)
    except (ConfigurationError, FileNotFoundError) as exc:
        print(f"Error: {exc}")
        sys.exit(2)


if __name__ == "__main__":
    main()
