# *************************************************************************
# SPDX-License-Identifier: Apache-2.0
# Licensed under the Apache License, Version 2.0.
# See the LICENSE file in the project root for the full license text.
# *************************************************************************
"""
Read a DIMACS CNF file, solve it with the backtracking solver and report the result.

Example:
    python -m py_backtrack.run_backtrack -i ./dataset/example.cnf -o - -v 1
"""
import sys
import gzip
import json
import time
import psutil
import argparse

from typing import Iterable, List, Optional

from py_backtrack.backtrack import BacktrackSolver, STATUS_NAMES
from py_backtrack.errors import FormatError
from py_backtrack.formula import CnfSnapshot, Lbool
from cnf_utils.utils import model_to_dimacs


EXIT_SAT = 10
EXIT_UNSAT = 20
EXIT_INDET = 0
EXIT_FORMAT_ERROR = 1

CONFIG_KEYS = ("verbosity", "default_value", "max_nodes", "time_limit", "record_entire_trace")

# JSON value types accepted per option; None (null) always means "unset".
CONFIG_TYPES = {
    "verbosity": (int,),
    "default_value": (bool,),
    "max_nodes": (int,),
    "time_limit": (int, float),
    "record_entire_trace": (bool,),
}


def parse_dimacs_lines(lines: Iterable[str]) -> CnfSnapshot:
    """
    Parse DIMACS CNF text into a snapshot.

    - Lines starting with 'c' or 'C' are comments; '%' ends the clause data
      (as in SATLIB benchmark files).
    - The 'p cnf <vars> <clauses>' line must come before any clause.
    - A clause may span lines and ends with 0.

    Raises:
        FormatError: On a missing or garbled problem line, a bad token, a literal
            out of range, an empty or unterminated clause, or a clause count that
            does not match the problem line.
    """
    nvar = None
    nclauses = None
    clauses: List[List[int]] = []
    lits: List[int] = []
    line_no = 0

    for line_no, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line[0] in ('c', 'C'):
            continue
        if line[0] == '%':
            break

        if line[0] == 'p':
            parts = line.split()
            if nvar is not None:
                raise FormatError("duplicate problem line", line_no)
            if len(parts) != 4 or parts[0] != 'p' or parts[1] != 'cnf':
                raise FormatError(f"bad problem line {line!r}", line_no)
            try:
                nvar = int(parts[2])
                nclauses = int(parts[3])
            except ValueError:
                raise FormatError(f"bad problem line {line!r}", line_no) from None
            if nvar < 0 or nclauses < 0:
                raise FormatError(f"negative count in problem line {line!r}", line_no)
            continue

        if nvar is None:
            raise FormatError("clause data before the 'p cnf' problem line", line_no)

        for tok in line.split():
            try:
                lit_val = int(tok)
            except ValueError:
                raise FormatError(f"invalid literal {tok!r}", line_no) from None
            if lit_val == 0:
                if not lits:
                    raise FormatError("empty clause", line_no)
                clauses.append(lits)
                lits = []
            elif abs(lit_val) > nvar:
                raise FormatError(f"literal {lit_val} out of range for {nvar} variables", line_no)
            else:
                lits.append(lit_val)

    if nvar is None:
        raise FormatError("missing 'p cnf' problem line")
    if lits:
        raise FormatError("last clause is not terminated by 0", line_no)
    if len(clauses) != nclauses:
        raise FormatError(f"problem line declares {nclauses} clauses, found {len(clauses)}")

    return CnfSnapshot(nvar, clauses)


def parse_dimacs_string(text: str) -> CnfSnapshot:
    return parse_dimacs_lines(text.splitlines())


def parse_dimacs_backtrack(filename: str) -> CnfSnapshot:
    """Reads a .cnf or .cnf.gz file into a snapshot."""
    open_fn = gzip.open if filename.endswith('.gz') else open
    try:
        with open_fn(filename, 'rt', encoding='utf-8') as f:
            return parse_dimacs_lines(f)
    except UnicodeDecodeError as e:
        raise FormatError(f"{filename}: not valid UTF-8 text ({e.reason} at byte {e.start})") from e
    except (gzip.BadGzipFile, EOFError) as e:
        raise FormatError(f"{filename}: corrupt gzip data ({e})") from e


def print_stats(S: BacktrackSolver, start_time: float):
    cpu_time = time.process_time() - start_time

    process = psutil.Process()
    mem_used = process.memory_info().rss / (1024 * 1024)  # in MB

    nodes_per_sec = S.nodes / cpu_time if cpu_time > 0 else 0
    conflicts_per_sec = S.conflicts / cpu_time if cpu_time > 0 else 0

    print("nodes                 : {:<14} ({:.0f} /sec)".format(S.nodes, nodes_per_sec))
    print("decisions             : {:<14}".format(S.decisions))
    print("conflicts             : {:<14} ({:.0f} /sec)".format(S.conflicts, conflicts_per_sec))
    print("backtracks            : {:<14}".format(S.backtracks))
    print("max depth             : {:<14}".format(S.max_depth))
    print("Memory used           : {:.2f} MB".format(mem_used))
    print("CPU time              : {:.3f} s".format(cpu_time))


def write_result(output_file: Optional[str], status: int, model: List[bool]):
    """Write 'SAT' plus the model, 'UNSAT' or 'INDET' to output_file ('-' means stdout only)."""
    if not output_file:
        return
    if output_file == '-':
        # The verdict is already on stdout, only the model is added.
        if status == Lbool.TRUE:
            print("v " + model_to_dimacs(model))
        return

    with open(output_file, 'w') as rf:
        if status == Lbool.TRUE:
            rf.write("SAT\n")
            rf.write(model_to_dimacs(model) + "\n")
        elif status == Lbool.FALSE:
            rf.write("UNSAT\n")
        else:
            rf.write("INDET\n")


def load_config(path: str) -> dict:
    """Load solver options from a JSON file; keys must be in CONFIG_KEYS."""
    with open(path, "r") as f:
        config = json.load(f)
    if not isinstance(config, dict):
        raise ValueError(f"{path}: expected a JSON object")
    unknown = sorted(set(config) - set(CONFIG_KEYS))
    if unknown:
        raise ValueError(f"{path}: unknown option(s) {', '.join(unknown)}")
    for key, value in config.items():
        if value is None:
            continue
        expected = CONFIG_TYPES[key]
        # bool is an int subclass, so it only counts where bool is listed.
        if (isinstance(value, bool) and bool not in expected) or not isinstance(value, expected):
            names = " or ".join(t.__name__ for t in expected)
            raise ValueError(f"{path}: option {key} must be {names}, got {value!r}")
    if config.get("verbosity") not in (None, 0, 1, 2):
        raise ValueError(f"{path}: option verbosity must be 0, 1 or 2")
    return config


def configure_solver(S: BacktrackSolver, options: dict):
    for key in CONFIG_KEYS:
        if key in options and options[key] is not None:
            setattr(S, key, options[key])


def _parse_bool(text: str) -> bool:
    lowered = text.lower()
    if lowered in ("true", "t", "1", "yes"):
        return True
    if lowered in ("false", "f", "0", "no"):
        return False
    raise argparse.ArgumentTypeError(f"expected true/false, got {text!r}")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Solve a DIMACS CNF with a depth-first backtracking search."
    )
    parser.add_argument(
        "-i", "--input_file", required=True,
        help="Path to input CNF file (.cnf or .cnf.gz)."
    )
    parser.add_argument(
        "-o", "--output_file", default=None,
        help="Path to write result (SAT/UNSAT + model). Use '-' for stdout."
    )
    parser.add_argument("--default-value", dest="default_value", type=_parse_bool, default=None,
                        help="Value for variables left unassigned in a model (default: true).")
    parser.add_argument("--max-nodes", dest="max_nodes", type=int, default=None,
                        help="Give up after this many search nodes.")
    parser.add_argument("--time-limit", dest="time_limit", type=float, default=None,
                        help="Give up after this many seconds.")
    parser.add_argument("--config", type=str, default=None,
                        help="JSON file with solver options; command-line flags take precedence.")
    parser.add_argument("-v", "--verbosity", type=int, choices=[0, 1, 2], default=None,
                        help="0: result only, 1: banner and stats, 2: also every decision.")
    parser.add_argument("--trace", action="store_true",
                        help="Print the full decision trace after solving.")
    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    options = {"verbosity": 1}
    if args.config:
        try:
            options.update(load_config(args.config))
        except (OSError, ValueError) as e:
            parser.error(str(e))
    for key in ("verbosity", "default_value", "max_nodes", "time_limit"):
        value = getattr(args, key)
        if value is not None:
            options[key] = value
    if args.trace:
        options["record_entire_trace"] = True

    start_time = time.process_time()

    try:
        snapshot = parse_dimacs_backtrack(args.input_file)
    except FormatError as e:
        print(f"PARSE ERROR! {e}", file=sys.stderr)
        sys.exit(EXIT_FORMAT_ERROR)

    S = BacktrackSolver(snapshot)
    configure_solver(S, options)
    result = S.solve_()

    if S.verbosity >= 1:
        print_stats(S, start_time)
    if args.trace:
        print("trace                 : {}".format(S.trace.strip()))

    print(STATUS_NAMES[result])
    write_result(args.output_file, result, S.model)

    if result == Lbool.TRUE:
        sys.exit(EXIT_SAT)
    elif result == Lbool.FALSE:
        sys.exit(EXIT_UNSAT)
    sys.exit(EXIT_INDET)


if __name__ == "__main__":
    main()
