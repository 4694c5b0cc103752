# *************************************************************************
# SPDX-License-Identifier: Apache-2.0
# Licensed under the Apache License, Version 2.0.
# See the LICENSE file in the project root for the full license text.
# *************************************************************************
"""
Run the backtracking solver over CNF instances from a TXT list or folders of .cnf files,
and save per-instance stats to JSON.

Each record can be cross-checked against pysat's Minisat22.

Example:
    python -m py_backtrack.run_batch --mode txt \
        --txt-file ./dataset/testset/sat_5_15.txt --save-path ./output/backtrack/
"""
import argparse
import os
import time
from pathlib import Path

from typing import Dict, List, Optional
from tqdm import tqdm

from py_backtrack.backtrack import BacktrackSolver, STATUS_NAMES
from py_backtrack.errors import FormatError
from py_backtrack.formula import CnfSnapshot, Lbool
from py_backtrack.run_backtrack import parse_dimacs_backtrack
from cnf_utils.utils import (get_cnf_files, read_sat_problems_lines, cnf_line_2_CNF_class,
                             save_dicts_to_json, model_satisfies, solve_with_reference)
from cnf_utils.trace_utils import convert_keytrace_to_str


def process_snapshot(snapshot: CnfSnapshot, name: str, verify: bool = True,
                     max_nodes: Optional[int] = None, time_limit: Optional[float] = None) -> Dict:
    """
    Solve one snapshot and collect a stats record.

    Args:
        snapshot: The formula to solve.
        name: Label stored in the record (file name or line index).
        verify: Also solve with Minisat22 and check the model.
        max_nodes: Optional node budget.
        time_limit: Optional time budget in seconds.
    """
    solver = BacktrackSolver(snapshot)
    solver.verbosity = 0
    solver.max_nodes = max_nodes
    solver.time_limit = time_limit

    t0 = time.perf_counter()
    result = solver.solve_()
    t1 = time.perf_counter()

    stats = {
        'name': name,
        'n_v': snapshot.nvar,
        'n_c': snapshot.nclauses,
        'status': STATUS_NAMES[result],
        'key_trace': convert_keytrace_to_str(solver.key_trace_events),
        'stats': solver.get_statistics(),
        'time_ms': {
            'solve': (t1 - t0) * 1000.0,
        },
    }
    if result == Lbool.TRUE:
        stats['model_ok'] = model_satisfies(snapshot.clauses, solver.model)

    if verify:
        t2 = time.perf_counter()
        reference = solve_with_reference(snapshot.clauses)
        t3 = time.perf_counter()
        reference_status = "SATISFIABLE" if reference is not None else "UNSATISFIABLE"
        stats['reference'] = {
            'status': reference_status,
            'time_ms': (t3 - t2) * 1000.0,
        }
        stats['agrees'] = (result == Lbool.UNDEF) or (reference_status == stats['status'])
    return stats


def process_sat_problems(problems: List[str], verify: bool = True,
                         max_nodes: Optional[int] = None, time_limit: Optional[float] = None) -> List[Dict]:
    """
    Solve one-line CNF problems ("1 -2 0 2 3 0") and return their stats records.
    Lines that fail to parse get a record with status 'FORMAT_ERROR'.
    """
    results = []
    for index, problem_line in enumerate(tqdm(problems)):
        try:
            cnf_formula = cnf_line_2_CNF_class(problem_line)
            snapshot = CnfSnapshot.from_pysat(cnf_formula)
        except ValueError as e:
            # FormatError is a ValueError too.
            print(f"[ERROR] line {index + 1}: {e}")
            results.append({'name': str(index), 'status': 'FORMAT_ERROR', 'error': str(e)})
            continue
        results.append(process_snapshot(snapshot, str(index), verify, max_nodes, time_limit))
    return results


def process_txt_file(problems_file: str, save_dir: str, output_json_file_pre: str,
                     verify: bool = True, max_nodes: Optional[int] = None,
                     time_limit: Optional[float] = None) -> str:
    """
    Read problems from a TXT file, solve them, and save JSON.

    Returns:
        Path of the written JSON file.
    """
    problems = read_sat_problems_lines(problems_file)
    file_name = Path(problems_file).name.split('.')[0]
    save_json = os.path.join(save_dir, f'{output_json_file_pre}_{file_name}.json')
    results = process_sat_problems(problems, verify, max_nodes, time_limit)
    save_dicts_to_json(results, save_json)
    print(f'Results saved to {save_json}')
    return save_json


def process_single_folder(folder_name: str, verify: bool = True, max_nodes: Optional[int] = None,
                          time_limit: Optional[float] = None) -> List[Dict]:
    """
    Solve all .cnf files in a folder and return the stats list.
    Files that fail to parse get a record with status 'FORMAT_ERROR'.
    """
    results = []
    for path in tqdm(get_cnf_files(folder_name)):
        fname = os.path.basename(path)
        try:
            snapshot = parse_dimacs_backtrack(path)
        except FormatError as e:
            print(f"[ERROR] {path}: {e}")
            results.append({'name': fname, 'status': 'FORMAT_ERROR', 'error': str(e)})
            continue
        results.append(process_snapshot(snapshot, fname, verify, max_nodes, time_limit))
    return results


def process_folders(folders: str, save_dir: str, output_json_file_pre: str, verify: bool = True,
                    max_nodes: Optional[int] = None, time_limit: Optional[float] = None) -> List[str]:
    """
    Process each subfolder of CNF files and write one JSON per subfolder.

    Returns:
        Paths of the written JSON files.
    """
    written = []
    for entry in sorted(os.scandir(folders), key=lambda e: e.name):
        if entry.is_dir():
            print(f"Processing subfolder: {entry.name}")
            results = process_single_folder(entry.path, verify, max_nodes, time_limit)
            save_json = os.path.join(save_dir, f'{output_json_file_pre}_{entry.name}.json')
            save_dicts_to_json(results, save_json)
            written.append(save_json)
    return written


def ensure_dir(dir_path: str) -> None:
    """Create directory if needed."""
    os.makedirs(dir_path, exist_ok=True)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Run the backtracking solver over CNF instances from a TXT file or over folders of .cnf files."
    )
    p.add_argument(
        "--mode", choices=["txt", "folders"], required=True,
        help="txt: read problems from a text file; folders: process each subfolder containing .cnf files."
    )
    p.add_argument("--txt-file", type=str, default=None,
                   help="Path to the input TXT file (required for --mode txt).")
    p.add_argument("--folder", type=str, default=None,
                   help="Path to the parent folder containing subfolders (required for --mode folders).")
    p.add_argument("--save-path", type=str, default="./output/backtrack/",
                   help="Directory to write the JSON results.")
    p.add_argument("--output-prefix", type=str, default="Backtrack", help="Prefix for JSON filenames.")
    p.add_argument("--no-verify", action="store_true", help="Skip the Minisat22 cross-check.")
    p.add_argument("--max-nodes", type=int, default=None, help="Per-instance node budget.")
    p.add_argument("--time-limit", type=float, default=None, help="Per-instance time budget in seconds.")
    return p


def main(argv: Optional[List[str]] = None):
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    verify = not args.no_verify

    ensure_dir(args.save_path)
    if args.mode == "txt":
        if not args.txt_file:
            parser.error("--txt-file is required when --mode txt")
        process_txt_file(args.txt_file, args.save_path, args.output_prefix, verify,
                         args.max_nodes, args.time_limit)
    else:
        if not args.folder:
            parser.error("--folder is required when --mode folders")
        process_folders(args.folder, args.save_path, args.output_prefix, verify,
                        args.max_nodes, args.time_limit)


if __name__ == "__main__":
    main()
