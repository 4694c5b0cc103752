# *************************************************************************
# SPDX-License-Identifier: Apache-2.0
# Licensed under the Apache License, Version 2.0.
# See the LICENSE file in the project root for the full license text.
# *************************************************************************
"""
Unit test comparing the backtracking solver with pysat's Minisat22, and the
batch runner, dataset generator and stats report built around that comparison.
"""
import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout, redirect_stderr
from pathlib import Path

import numpy as np

from py_backtrack.backtrack import BacktrackSolver
from py_backtrack.formula import CnfSnapshot, Lbool
from py_backtrack.run_batch import process_snapshot, process_txt_file, process_folders, main as batch_main
from cnf_utils.utils import (cnf_line_2_CNF_class, get_cnf_files, model_satisfies, model_to_dimacs,
                             read_sat_problems_lines, solve_with_reference, write_temp_cnf_file)
from generate_dataset.gen_cnf_buckets import generate_sat_problem, to_dimacs_like_format, write_bucket
from analysis_data.summarize_stats import analyze_file


class TestReferenceComparison(unittest.TestCase):
    def test_verdicts_match_minisat(self):
        rng = np.random.default_rng(31)
        for trial in range(60):
            nvar = int(rng.integers(5, 13))
            clauses = generate_sat_problem(nvar, int(round(4.3 * nvar)), 3, planted=False, rng=rng)
            with self.subTest(trial=trial):
                solver = BacktrackSolver(CnfSnapshot(nvar, clauses))
                result = solver.solve_()
                reference = solve_with_reference(clauses)
                self.assertEqual(result == Lbool.TRUE, reference is not None)
                if reference is not None:
                    self.assertTrue(model_satisfies(clauses, solver.model))

    def test_reference_unsat(self):
        self.assertIsNone(solve_with_reference([[1], [-1]]))
        model = solve_with_reference([[1, 2], [-1]])
        self.assertIn(2, model)


class TestCnfUtils(unittest.TestCase):
    def test_cnf_line_2_CNF_class(self):
        cnf = cnf_line_2_CNF_class("1 -2 0 2 3 0 -3")
        self.assertEqual(cnf.clauses, [[1, -2], [2, 3], [-3]])
        self.assertEqual(cnf.nv, 3)

    def test_model_to_dimacs(self):
        self.assertEqual(model_to_dimacs([True, False, True]), "1 -2 3 0")
        self.assertEqual(model_to_dimacs([]), "0")

    def test_model_satisfies_partial(self):
        self.assertTrue(model_satisfies([[1, -2]], [True, None]))
        self.assertFalse(model_satisfies([[1, -2]], [None, None]))

    def test_files_round_trip(self):
        with tempfile.TemporaryDirectory() as tmp:
            cnf = cnf_line_2_CNF_class("1 -2 0 2 0")
            path = os.path.join(tmp, "a.cnf")
            write_temp_cnf_file(cnf, filename=path)
            Path(tmp, "notes.txt").write_text("x")
            self.assertEqual(get_cnf_files(tmp), [path])


class TestGenerator(unittest.TestCase):
    def test_planted_clause_shape(self):
        rng = np.random.default_rng(0)
        clauses = generate_sat_problem(8, 30, 3, planted=True, rng=rng)
        self.assertEqual(len(clauses), 30)
        for clause in clauses:
            self.assertEqual(len(clause), 3)
            self.assertEqual(len({abs(l) for l in clause}), 3)
            self.assertTrue(all(1 <= abs(l) <= 8 for l in clause))
        self.assertIsNotNone(solve_with_reference(clauses))

    def test_clause_size_capped(self):
        clauses = generate_sat_problem(2, 4, 3, planted=False, rng=np.random.default_rng(1))
        self.assertTrue(all(len(c) == 2 for c in clauses))

    def test_to_dimacs_like_format(self):
        self.assertEqual(to_dimacs_like_format([[1, -3], [2]]), "1 -3 0 2 0")

    def test_write_bucket(self):
        with tempfile.TemporaryDirectory() as tmp:
            with redirect_stderr(io.StringIO()):
                fname = write_bucket(4, 6, 5, 3.0, 4.0, 3, Path(tmp), planted=True, seed=3)
            self.assertEqual(fname.name, "sat_4_6.txt")
            lines = read_sat_problems_lines(str(fname))
            self.assertEqual(len(lines), 5)
            for line in lines:
                self.assertIsNotNone(solve_with_reference(cnf_line_2_CNF_class(line).clauses))


class TestBatchRunner(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def test_process_snapshot(self):
        stats = process_snapshot(CnfSnapshot(2, [[1, 2], [-1, 2], [1, -2]]), "s2")
        self.assertEqual(stats['status'], "SATISFIABLE")
        self.assertTrue(stats['model_ok'])
        self.assertTrue(stats['agrees'])
        self.assertEqual(stats['key_trace'], "D 1 L 1 D 2 L 2")
        self.assertEqual(stats['reference']['status'], "SATISFIABLE")

        stats = process_snapshot(CnfSnapshot(2, [[1], [-1, 2], [-2]]), "s1", verify=False)
        self.assertEqual(stats['status'], "UNSATISFIABLE")
        self.assertNotIn('agrees', stats)

    def test_budget_counts_as_agreement(self):
        stats = process_snapshot(CnfSnapshot(2, [[1], [-1, 2], [-2]]), "s1", max_nodes=1)
        self.assertEqual(stats['status'], "INDETERMINATE")
        self.assertTrue(stats['agrees'])

    def test_txt_mode(self):
        txt = os.path.join(self.tmp, "bucket.txt")
        with open(txt, "w") as f:
            f.write("1 2 0 -1 2 0 1 -2 0\n1 0 -1 2 0 -2 0\n\n")
        out_dir = os.path.join(self.tmp, "out")
        os.makedirs(out_dir)
        with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()):
            save_json = process_txt_file(txt, out_dir, "BT")
        self.assertEqual(os.path.basename(save_json), "BT_bucket.json")
        with open(save_json) as f:
            records = json.load(f)
        self.assertEqual([r['status'] for r in records], ["SATISFIABLE", "UNSATISFIABLE"])
        self.assertTrue(all(r['agrees'] for r in records))

        summary = analyze_file(records)
        self.assertEqual(summary['status'], {"SATISFIABLE": 1, "UNSATISFIABLE": 1})
        self.assertEqual(summary['agree'], 2)
        self.assertEqual(summary['metrics']['nodes']['n'], 2)
        self.assertEqual(summary['metrics']['nodes']['median'], 4.0)

    def test_txt_mode_keeps_going_past_bad_lines(self):
        txt = os.path.join(self.tmp, "mixed.txt")
        with open(txt, "w") as f:
            f.write("1 2 0\n1 x 0\n-1 0\n")
        with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()):
            save_json = process_txt_file(txt, self.tmp, "BT")
        with open(save_json) as f:
            records = json.load(f)
        self.assertEqual([r['status'] for r in records], ["SATISFIABLE", "FORMAT_ERROR", "SATISFIABLE"])
        self.assertEqual(records[1]['name'], "1")
        self.assertIn("x", records[1]['error'])

        summary = analyze_file(records)
        self.assertEqual(summary['status']['FORMAT_ERROR'], 1)

    def test_folders_mode(self):
        sub = os.path.join(self.tmp, "in", "small")
        os.makedirs(sub)
        with open(os.path.join(sub, "a.cnf"), "w") as f:
            f.write("p cnf 1 1\n1 0\n")
        with open(os.path.join(sub, "b.cnf"), "w") as f:
            f.write("p cnf 1 1\n5 0\n")
        out_dir = os.path.join(self.tmp, "out")
        with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()):
            batch_main(["--mode", "folders", "--folder", os.path.join(self.tmp, "in"),
                        "--save-path", out_dir, "--output-prefix", "BT"])
        with open(os.path.join(out_dir, "BT_small.json")) as f:
            records = json.load(f)
        self.assertEqual([r['name'] for r in records], ["a.cnf", "b.cnf"])
        self.assertEqual(records[0]['status'], "SATISFIABLE")
        self.assertEqual(records[1]['status'], "FORMAT_ERROR")

    def test_process_folders_returns_paths(self):
        sub = os.path.join(self.tmp, "in", "x")
        os.makedirs(sub)
        with open(os.path.join(sub, "a.cnf"), "w") as f:
            f.write("p cnf 2 2\n1 0\n-1 0\n")
        with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()):
            written = process_folders(os.path.join(self.tmp, "in"), self.tmp, "P", verify=False)
        self.assertEqual(written, [os.path.join(self.tmp, "P_x.json")])


if __name__ == '__main__':
    unittest.main()
