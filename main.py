#!/usr/bin/env python3
"""
fgbp: Factor Graph Belief Propagation

Exact sum-/max-product inference over junction trees.

Usage:
    # Solve from JSON file
    python main.py solve --input problem.json --output result.json

    # Solve from command line
    python main.py solve --vars "A:2,B:2" --factors "f1:A,B:[[1,2],[-3,0]]" --mode max

    # Run demos
    python main.py demo --example chain

    # Run tests
    python main.py test
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, Tuple

import numpy as np

from fgbp import FGBPError, __version__
from fgbp.api.solve import NamedFactors, SolveResult, solve
from fgbp.graph.potentials import LinearPotential, dense, singleton, stats

logger = logging.getLogger("fgbp.cli")


def load_problem_from_json(filepath: str) -> Tuple[Dict[str, int], NamedFactors]:
    """
    Load a factor graph problem from JSON file.

    Expected format:
    {
        "variables": {"A": 2, "B": 3},
        "factors": {
            "f1": {"scope": ["A", "B"], "values": [[0.1, 0.2, 0.3], [0.4, 0.5, 0.6]]}
        }
    }
    """
    with open(filepath, "r") as f:
        data = json.load(f)

    var_domains = {name: int(size) for name, size in data["variables"].items()}

    factors = {}
    for name, fdata in data["factors"].items():
        scope = tuple(fdata["scope"])
        values = np.array(fdata["values"], dtype=np.float64)
        factors[name] = (scope, values)

    return var_domains, factors


def save_result_to_json(filepath: str, result: SolveResult, mode: str) -> None:
    """Save solver result to JSON file."""
    output = {
        "mode": mode,
        "value": float(result.value),
        "beliefs": {var: b.tolist() for var, b in result.beliefs.items()},
        "settings": result.settings,
        "status": "unsat" if np.isneginf(result.value) else "success",
    }

    with open(filepath, "w") as f:
        json.dump(output, f, indent=2)


def parse_vars_string(vars_str: str) -> Dict[str, int]:
    """Parse variable specification: 'A:2,B:3,C:2'"""
    var_domains = {}
    for part in vars_str.split(","):
        part = part.strip()
        if ":" in part:
            name, size = part.split(":")
            var_domains[name.strip()] = int(size.strip())
    return var_domains


def parse_factors_string(factors_str: str) -> NamedFactors:
    """Parse factor specification: 'f1:A,B:[[0.9,0.1],[0.2,0.8]];f2:B,C:[[0.3,0.7],[0.5,0.5]]'"""
    factors = {}
    for factor_spec in factors_str.split(";"):
        factor_spec = factor_spec.strip()
        if not factor_spec:
            continue

        parts = factor_spec.split(":")
        if len(parts) >= 3:
            name = parts[0].strip()
            scope = tuple(v.strip() for v in parts[1].split(","))
            values_str = ":".join(parts[2:])
            values = np.array(json.loads(values_str), dtype=np.float64)
            factors[name] = (scope, values)

    return factors


def _print_beliefs(result: SolveResult, mode: str) -> None:
    label = "P" if mode == "sum" else "maxmarg"
    for var, b in sorted(result.beliefs.items()):
        b_str = ", ".join(f"{x:.6f}" for x in b)
        print(f"  {label}({var}) = [{b_str}]")


def cmd_solve(args):
    """Execute the solve command."""

    if args.input:
        print(f"Loading problem from: {args.input}")
        var_domains, factors = load_problem_from_json(args.input)
    elif args.vars and args.factors:
        var_domains = parse_vars_string(args.vars)
        factors = parse_factors_string(args.factors)
    else:
        print("Error: Must specify either --input FILE or both --vars and --factors")
        return 1

    print("\nProblem specification:")
    print(f"  Variables: {len(var_domains)}")
    for var, size in sorted(var_domains.items()):
        print(f"    {var}: domain size {size}")
    print(f"  Factors: {len(factors)}")
    for name, (scope, values) in sorted(factors.items()):
        print(f"    {name}: scope {scope}, shape {values.shape}")

    print(f"\nMode: {args.mode}-product, tables in {args.space}-space")

    try:
        result = solve(
            var_domains, factors,
            mode=args.mode, space=args.space, max_iterations=args.iterations,
        )
    except FGBPError as e:
        logger.error("solving failed: %s", e)
        return 1

    print("\nResults:")
    if args.mode == "sum":
        print(f"  log(Z) = {result.value:.10f}")
    else:
        print(f"  max score = {result.value:.10f}")
        print(f"  assignment = {result.settings}")

    if args.marginals:
        print("\nBeliefs:")
        _print_beliefs(result, args.mode)

    if args.verify:
        exact = solve(var_domains, factors, mode=args.mode, space=args.space, exact=True)
        match = bool(np.isclose(result.value, exact.value))
        print(f"\nVerification (brute force): {exact.value:.10f}  Match: {match}")
        if not match:
            return 1

    if args.output:
        save_result_to_json(args.output, result, args.mode)
        print(f"\nResults saved to: {args.output}")

    return 0


def _check(var_domains, factors, mode="sum", **kwargs) -> bool:
    bp = solve(var_domains, factors, mode=mode, **kwargs)
    exact = solve(var_domains, factors, mode=mode, exact=True, **kwargs)
    print(f"\n{'log(Z)' if mode == 'sum' else 'max score'} = {bp.value:.6f}")
    _print_beliefs(bp, mode)
    print(f"\nVerification (brute force): {exact.value:.6f}")
    match = bool(np.isclose(bp.value, exact.value)) and all(
        np.allclose(bp.beliefs[v], exact.beliefs[v]) for v in var_domains
    )
    print(f"Match: {match}")
    return match


def demo_simple_chain():
    """Demo: Simple chain A -- B -- C"""
    print("=" * 60)
    print("Demo: Simple Chain A -- B -- C")
    print("=" * 60)

    var_domains = {"A": 2, "B": 2, "C": 2}
    factors = {
        "f_A": (("A",), np.array([0.6, 0.4])),
        "f_AB": (("A", "B"), np.array([[0.9, 0.1], [0.2, 0.8]])),
        "f_BC": (("B", "C"), np.array([[0.3, 0.7], [0.5, 0.5]])),
    }

    print("\nFactor Graph: A -- B -- C (probability-space tables)")
    return _check(var_domains, factors, space="prob")


def demo_grid_2x2():
    """Demo: 2x2 Grid Ising Model"""
    print("=" * 60)
    print("Demo: 2x2 Grid Ising Model")
    print("=" * 60)

    var_domains = {"X00": 2, "X01": 2, "X10": 2, "X11": 2}

    J = 0.5
    psi = np.array([[J, -J], [-J, J]])

    factors = {
        "f_00_01": (("X00", "X01"), psi),
        "f_00_10": (("X00", "X10"), psi),
        "f_01_11": (("X01", "X11"), psi),
        "f_10_11": (("X10", "X11"), psi),
    }

    print("\nFactor Graph:")
    print("  X00 -- X01")
    print("   |      |")
    print("  X10 -- X11")
    print(f"  Coupling J = {J}")
    return _check(var_domains, factors)


def demo_grid_3x3():
    """Demo: 3x3 Grid Ising Model, max-product"""
    print("=" * 60)
    print("Demo: 3x3 Grid Ising Model (MAP)")
    print("=" * 60)

    var_domains = {f"X{i}{j}": 2 for i in range(3) for j in range(3)}

    J = 0.3
    psi = np.array([[J, -J], [-J, J]])

    factors = {"bias": (("X00",), np.array([0.1, 0.0]))}
    for i in range(3):
        for j in range(2):
            factors[f"h_{i}{j}"] = ((f"X{i}{j}", f"X{i}{j+1}"), psi)
    for i in range(2):
        for j in range(3):
            factors[f"v_{i}{j}"] = ((f"X{i}{j}", f"X{i+1}{j}"), psi)

    print(f"\n  Coupling J = {J}, {len(factors)} factors")
    return _check(var_domains, factors, mode="max")


def demo_features():
    """Demo: 5-chain with linear potentials"""
    print("=" * 60)
    print("Demo: Chain with Feature Potentials")
    print("=" * 60)

    fixed_stats = stats((2, 2), lambda a: singleton(2 * a[0] + a[1], 1.0))
    weights = dense(4, (0, 1.0), (1, 2.0), (2, -3.0), (3, 0.0))

    names = [f"Y{i}" for i in range(5)]
    var_domains = {n: 2 for n in names}
    factors = {
        f"f{i}": ((a, b), LinearPotential((2, 2), fixed_stats))
        for i, (a, b) in enumerate(zip(names[:-1], names[1:]))
    }

    result = solve(var_domains, factors, mode="max", weights=weights)
    print(f"\nWeights = {weights.tolist()}")
    print(f"MAP assignment = {result.settings}")
    print(f"Feature counts = {result.graph.gradient_vector().tolist()}")
    return _check(var_domains, factors, mode="max", weights=weights)


def cmd_demo(args):
    """Execute the demo command."""
    demos = {
        "chain": demo_simple_chain,
        "grid": demo_grid_2x2,
        "grid3": demo_grid_3x3,
        "features": demo_features,
    }

    if args.example == "all":
        results = []
        for name, func in demos.items():
            try:
                passed = func()
            except FGBPError as e:
                logger.error("demo %s failed: %s", name, e)
                passed = False
            results.append((name, passed))
            print()

        print("=" * 60)
        print("Summary")
        print("=" * 60)
        all_passed = True
        for name, passed in results:
            status = "PASS" if passed else "FAIL"
            print(f"  {name}: {status}")
            if not passed:
                all_passed = False

        return 0 if all_passed else 1

    try:
        return 0 if demos[args.example]() else 1
    except FGBPError as e:
        logger.error("demo %s failed: %s", args.example, e)
        return 1


def cmd_test(args):
    """Execute the test command."""
    import subprocess

    test_dir = Path(__file__).parent / "tests"
    if not test_dir.exists():
        print(f"Test directory not found: {test_dir}")
        return 1

    cmd = [sys.executable, "-m", "pytest", str(test_dir)]
    if args.verbose:
        cmd.append("-v")
    if args.coverage:
        cmd.extend(["--cov=fgbp", "--cov-report=term-missing"])

    print(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, cwd=Path(__file__).parent)
    return result.returncode


def cmd_info(args):
    """Display system information."""
    import networkx
    import scipy

    print(f"fgbp v{__version__}")
    print("Factor Graph Belief Propagation over junction trees")
    print()
    print("Modes:")
    print("  sum - sum-product (marginals, log Z, expected features)")
    print("  max - max-product (max-marginals, MAP score, arg-max features)")
    print()
    print("Python:", sys.version.split()[0])
    print("NumPy:", np.__version__)
    print("SciPy:", scipy.__version__)
    print("NetworkX:", networkx.__version__)
    return 0


def main():
    parser = argparse.ArgumentParser(
        prog="fgbp",
        description="fgbp: Factor Graph Belief Propagation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Solve from JSON file
  fgbp solve --input problem.json --output result.json

  # Solve with command-line specification
  fgbp solve --vars "A:2,B:2" --factors "f1:A,B:[[1,2],[-3,0]]" --mode max

  # Run demos
  fgbp demo --example chain
  fgbp demo --example all

  # Run tests
  fgbp test -v
"""
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"fgbp {__version__}"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Solve command
    solve_parser = subparsers.add_parser("solve", help="Solve a factor graph problem")
    solve_parser.add_argument("--input", "-i", type=str, help="Input JSON file")
    solve_parser.add_argument("--output", "-o", type=str, help="Output JSON file")
    solve_parser.add_argument("--vars", type=str, help="Variables spec: 'A:2,B:3'")
    solve_parser.add_argument("--factors", type=str, help="Factors spec: 'f1:A,B:[[...]]'")
    solve_parser.add_argument(
        "--mode", "-m",
        choices=["sum", "max"],
        default="sum",
        help="Sum-product or max-product (default: sum)"
    )
    solve_parser.add_argument(
        "--space", "-s",
        choices=["log", "prob"],
        default="log",
        help="Tables are log-scores or nonnegative weights (default: log)"
    )
    solve_parser.add_argument("--iterations", "-n", type=int, default=1, help="BP sweeps (default: 1)")
    solve_parser.add_argument("--marginals", action="store_true", help="Display beliefs")
    solve_parser.add_argument("--verify", action="store_true", help="Compare with brute force")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Run demonstration examples")
    demo_parser.add_argument(
        "--example", "-e",
        choices=["chain", "grid", "grid3", "features", "all"],
        default="all",
        help="Which example to run (default: all)"
    )

    # Test command
    test_parser = subparsers.add_parser("test", help="Run test suite")
    test_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    test_parser.add_argument("--coverage", "-c", action="store_true", help="With coverage")

    # Info command
    subparsers.add_parser("info", help="Show system information")

    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "solve":
        return cmd_solve(args)
    elif args.command == "demo":
        return cmd_demo(args)
    elif args.command == "test":
        return cmd_test(args)
    elif args.command == "info":
        return cmd_info(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
