"""
Generate random k-SAT formulas in variable-count buckets and write each CNF on one line
(DIMACS-lite: integers with trailing 0 per clause).

Two modes:
  * planted: every clause is satisfied by a hidden random assignment (always SAT),
  * uniform: literals are drawn uniformly (SAT or UNSAT, depending on the ratio).

Example:
    # One bucket 5-15 with 500 items
    python ./generate_dataset/gen_cnf_buckets.py \
        --vars-min 5 --vars-max 15 --samples 500 --out-dir ./dataset/testset/
"""
import argparse
import random
from pathlib import Path
from typing import List

import numpy as np
from tqdm import trange


LITERAL_MAKES_CLAUSE_TRUE_PROB = 0.5


def generate_random_assignment(num_vars: int, rng: np.random.Generator) -> List[bool]:
    """
    Generate a random boolean assignment x1..xN.

    Returns:
    	assignment[i] is the value of variable i + 1.
    """
    return [bool(v) for v in rng.integers(0, 2, size=num_vars)]


def generate_planted_clause(assignment: List[bool], clause_size: int, rng: np.random.Generator) -> List[int]:
    """
    Create one clause that is satisfied by the given assignment.

    Each literal is made true with LITERAL_MAKES_CLAUSE_TRUE_PROB; the last one is
    forced true when none of the others is.
    """
    chosen = rng.choice(len(assignment), size=clause_size, replace=False)
    clause = []
    clause_is_true = False
    for i, v in enumerate(chosen):
        var = int(v) + 1
        make_true = rng.random() < LITERAL_MAKES_CLAUSE_TRUE_PROB
        is_last = (i == clause_size - 1)
        if make_true or (is_last and not clause_is_true):
            clause.append(var if assignment[var - 1] else -var)
            clause_is_true = True
        else:
            clause.append(-var if assignment[var - 1] else var)
    return clause


def generate_uniform_clause(num_vars: int, clause_size: int, rng: np.random.Generator) -> List[int]:
    """Create one clause over distinct variables with uniformly random polarity."""
    chosen = rng.choice(num_vars, size=clause_size, replace=False)
    signs = rng.integers(0, 2, size=clause_size)
    return [int(v) + 1 if s else -(int(v) + 1) for v, s in zip(chosen, signs)]


def generate_sat_problem(num_vars: int, num_clauses: int, clause_size: int,
                         planted: bool = True, rng: np.random.Generator = None) -> List[List[int]]:
    """
    Generate a random CNF with the requested size.

    Args:
    	num_vars: Number of variables.
    	num_clauses: Number of clauses.
    	clause_size: Literals per clause (e.g., 3 for 3-SAT); capped at num_vars.
    	planted: If True the formula is satisfiable by construction.
    	rng: numpy Generator; a fresh unseeded one when None.

    Returns:
    	List of clauses (each a list of signed ints).
    """
    if num_vars < 1:
        raise ValueError("num_vars must be positive")
    rng = rng if rng is not None else np.random.default_rng()
    clause_size = min(clause_size, num_vars)

    if planted:
        assignment = generate_random_assignment(num_vars, rng)
        return [generate_planted_clause(assignment, clause_size, rng) for _ in range(num_clauses)]
    return [generate_uniform_clause(num_vars, clause_size, rng) for _ in range(num_clauses)]


def to_dimacs_like_format(clauses: List[List[int]]) -> str:
    """
    Convert clauses like [[1, -3], [2]] to '1 -3 0 2 0' form in a single line.
    """
    return " ".join(" ".join(str(lit) for lit in clause) + " 0" for clause in clauses)


def write_bucket(
        vars_min: int,
        vars_max: int,
        samples: int,
        ratio_min: float,
        ratio_max: float,
        clause_size: int,
        out_dir: Path,
        planted: bool = True,
        seed: int = 42,
) -> Path:
    """
    Write a bucket of random CNFs to a text file (one CNF per line).

    Args:
    	vars_min: Inclusive lower bound on #vars.
    	vars_max: Inclusive upper bound on #vars.
    	samples: Number of CNFs to generate.
    	ratio_min: Min clause/var ratio.
    	ratio_max: Max clause/var ratio.
    	clause_size: Literals per clause.
    	out_dir: Output folder for the bucket file.
    	planted: Generate satisfiable-by-construction formulas.
    	seed: Seed for the random generators.

    Returns:
    	Path of the written bucket file.
    """
    rng = np.random.default_rng(seed)
    py_rng = random.Random(seed)
    out_dir.mkdir(parents=True, exist_ok=True)
    kind = "sat" if planted else "rand"
    fname = out_dir / f"{kind}_{vars_min}_{vars_max}.txt"
    with fname.open("w") as fh:
        desc = f"[{fname.name}] {samples:,} formulas"
        for _ in trange(samples, desc=desc):
            n_vars = py_rng.randint(vars_min, vars_max)
            ratio = py_rng.uniform(ratio_min, ratio_max)
            n_clauses = max(1, int(round(ratio * n_vars)))

            clauses = generate_sat_problem(n_vars, n_clauses, clause_size, planted, rng)
            fh.write(to_dimacs_like_format(clauses) + "\n")
    return fname


def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Generate bucketed random k-SAT dataset")

    ap.add_argument("--vars-min", type=int, required=True)
    ap.add_argument("--vars-max", type=int, required=True)
    ap.add_argument("--samples", type=int, required=True)
    ap.add_argument("--ratio-min", type=float, default=4.1)
    ap.add_argument("--ratio-max", type=float, default=4.4)
    ap.add_argument("--clause-size", type=int, default=3)
    ap.add_argument("--uniform", action="store_true",
                    help="Draw literals uniformly instead of planting a solution.")
    ap.add_argument("--seed", type=int, default=42)
    ap.add_argument("--out-dir", type=Path, required=True)
    return ap.parse_args()


def main() -> None:
    args = parse_args()

    write_bucket(
        vars_min=args.vars_min,
        vars_max=args.vars_max,
        samples=args.samples,
        ratio_min=args.ratio_min,
        ratio_max=args.ratio_max,
        clause_size=args.clause_size,
        out_dir=args.out_dir,
        planted=not args.uniform,
        seed=args.seed,
    )


if __name__ == "__main__":
    main()
