"""
This file includes some general help functions.
"""
import os
import json
import itertools

from typing import List, Optional, Sequence
from pysat.formula import CNF
from pysat.solvers import Minisat22


def get_cnf_files(folder_path: str) -> List[str]:
    """Returns a sorted list of .cnf and .cnf.gz files in the specified folder."""
    return sorted(
        os.path.join(folder_path, f)
        for f in os.listdir(folder_path)
        if f.endswith('.cnf') or f.endswith('.cnf.gz')
    )


def save_dicts_to_json(results: list, output_filename: str) -> None:
    """
    Saves the results to a JSON file.

    Args:
        results (list): The results to save.
        output_filename (str): The filename for the output JSON file.
    """
    with open(output_filename, 'w') as json_file:
        json.dump(results, json_file, indent=4)


def read_sat_problems_lines(filename: str) -> List[str]:
    """
    Reads SAT problems from a file, each line is a problem in CNF format, e.g., "4 5 -1 0 5 1 -2 0".

    Args:
        filename (str): Path to the file containing SAT problems.

    Returns:
        list: A list of SAT problems, one per line.
    """
    with open(filename, 'r') as file:
        problems = file.readlines()
    return [line.strip() for line in problems if line.strip()]


def write_temp_cnf_file(cnf_formula: CNF, filename: str = './temp_problem.cnf') -> None:
    cnf_formula.to_file(filename)


def cnf_line_2_CNF_class(problem_line: str) -> CNF:
    """
    Parses a problem string into a CNF object.

    Args:
        problem_line (str): The problem string where clauses are divided by '0'.

    Returns:
        CNF object representing the SAT problem.
    """
    cnf = CNF()
    clause = []
    for token in problem_line.strip().split():
        literal = int(token)
        if literal == 0:
            if clause:
                cnf.append(clause)
                clause = []
        else:
            clause.append(literal)

    if clause:
        cnf.append(clause)
    return cnf


def model_to_dimacs(model: Sequence[bool]) -> str:
    """Render a total model as DIMACS literals, e.g. [True, False] -> '1 -2 0'."""
    lits = [str(i + 1) if val else str(-(i + 1)) for i, val in enumerate(model)]
    return " ".join(lits + ["0"])


def model_satisfies(clauses: Sequence[Sequence[int]], model: Sequence[Optional[bool]]) -> bool:
    """
    Check a model against a clause list.

    Args:
        clauses: Clauses of signed ints.
        model: model[i] is the value of variable i + 1; None counts as unassigned.

    Returns:
        True iff every clause has a literal that is true under the model.
    """
    for clause in clauses:
        satisfied = False
        for lit in clause:
            val = model[abs(lit) - 1]
            if val is not None and val == (lit > 0):
                satisfied = True
                break
        if not satisfied:
            return False
    return True


def brute_force_satisfiable(clauses: Sequence[Sequence[int]], nvar: int) -> bool:
    """Decide satisfiability by enumerating all 2^nvar truth assignments. Small nvar only."""
    for values in itertools.product((True, False), repeat=nvar):
        if model_satisfies(clauses, values):
            return True
    return False


def solve_with_reference(clauses: Sequence[Sequence[int]]) -> Optional[List[int]]:
    """
    Solve with pysat's Minisat22.

    Returns:
        The model as a list of signed ints when satisfiable, otherwise None.
    """
    with Minisat22(bootstrap_with=[list(c) for c in clauses]) as solver:
        if solver.solve():
            return solver.get_model()
    return None
