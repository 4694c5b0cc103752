# *************************************************************************
# SPDX-License-Identifier: Apache-2.0
# Licensed under the Apache License, Version 2.0.
# See the LICENSE file in the project root for the full license text.
# *************************************************************************
"""
Unit tests for the recursive backtracking driver: verdicts against brute force,
model completion, traces, budgets and statistics.
"""
import io
import itertools
import unittest
from contextlib import redirect_stdout
from unittest import mock

import numpy as np

from py_backtrack.backtrack import BacktrackSolver, Sat, UNSAT, complete_model, solve_cnf
from py_backtrack.errors import InvalidStateError
from py_backtrack.formula import CnfSnapshot, Lbool
from cnf_utils.utils import brute_force_satisfiable, model_satisfies
from cnf_utils.trace_utils import convert_keytrace_to_str, extract_trace, get_key_trace
from generate_dataset.gen_cnf_buckets import generate_sat_problem


def make_solver(clauses, nvar):
    return BacktrackSolver(CnfSnapshot(nvar, clauses))


class TestScenarios(unittest.TestCase):
    def test_unsat_chain(self):
        solver = make_solver([[1], [-1, 2], [-2]], 2)
        solver.record_entire_trace = True
        self.assertEqual(solver.solve_(), Lbool.FALSE)
        self.assertEqual(solver.model, [])
        self.assertEqual(solver.trace.strip(), "D 1 L 1 D 2 L 2 BT -2 L 2 BT -1 L 1")
        self.assertEqual(solver.get_statistics()['nodes'], 5)
        self.assertEqual(solver.decisions, 4)
        self.assertEqual(solver.conflicts, 3)
        self.assertEqual(solver.backtracks, 4)
        self.assertEqual(solver.max_depth, 2)
        # UNSAT unwinds every assignment.
        self.assertEqual(solver.formula.depth, 0)
        self.assertEqual([tuple(c) for c in solver.formula.live], [(1,), (-1, 2), (-2,)])

    def test_sat_both_true(self):
        solver = make_solver([[1, 2], [-1, 2], [1, -2]], 2)
        self.assertEqual(solver.solve_(), Lbool.TRUE)
        self.assertEqual(solver.model, [True, True])
        self.assertEqual(convert_keytrace_to_str(solver.key_trace_events), "D 1 L 1 D 2 L 2")
        # The satisfying assignment stays in place.
        self.assertEqual(solver.formula.depth, 2)

    def test_sat_after_first_decision(self):
        solver = make_solver([[1, -2, 3]], 3)
        self.assertEqual(solver.solve_(), Lbool.TRUE)
        self.assertEqual(solver.decisions, 1)
        self.assertEqual(solver.partial_model, [True, None, None])
        self.assertEqual(solver.model, [True, True, True])

    def test_dont_care_default_value(self):
        solver = make_solver([[1, -2, 3]], 3)
        solver.default_value = False
        solver.solve_()
        self.assertEqual(solver.model, [True, False, False])
        self.assertTrue(model_satisfies([[1, -2, 3]], solver.model))

    def test_no_clauses(self):
        for nvar in (0, 1, 5):
            with self.subTest(nvar=nvar):
                solver = make_solver([], nvar)
                self.assertEqual(solver.solve_(), Lbool.TRUE)
                self.assertEqual(solver.model, [True] * nvar)
                self.assertEqual(solver.decisions, 0)
                self.assertEqual(solver.nodes, 1)

    def test_flips_to_false_branch(self):
        solver = make_solver([[-1], [1, -2]], 2)
        solver.record_entire_trace = True
        self.assertEqual(solver.solve_(), Lbool.TRUE)
        self.assertEqual(solver.model, [False, False])
        self.assertEqual(solver.trace.strip(), "D 1 L 1 BT -1 L 1 D 2 L 2 BT -2 L 2")
        self.assertEqual(convert_keytrace_to_str(solver.key_trace_events), "BT -1 L 1 BT -2 L 2")


class TestAgainstBruteForce(unittest.TestCase):
    def test_random_formulas(self):
        rng = np.random.default_rng(2024)
        for trial in range(150):
            nvar = int(rng.integers(1, 9))
            nclauses = int(rng.integers(1, 5 * nvar + 2))
            clauses = generate_sat_problem(nvar, nclauses, 3, planted=False, rng=rng)
            with self.subTest(trial=trial, clauses=clauses):
                solver = make_solver(clauses, nvar)
                result = solver.solve_()
                expected = brute_force_satisfiable(clauses, nvar)
                self.assertEqual(result == Lbool.TRUE, expected)
                if expected:
                    self.assertEqual(len(solver.model), nvar)
                    self.assertTrue(model_satisfies(clauses, solver.model))
                    self.assertTrue(model_satisfies(clauses, solver.partial_model))

    def test_planted_formulas_are_sat(self):
        rng = np.random.default_rng(5)
        for trial in range(30):
            clauses = generate_sat_problem(10, 42, 3, planted=True, rng=rng)
            with self.subTest(trial=trial):
                result = solve_cnf(clauses, nvar=10)
                self.assertIsInstance(result, Sat)
                self.assertTrue(model_satisfies(clauses, result.model))

    def test_all_two_variable_formulas(self):
        lits = [1, -1, 2, -2]
        all_clauses = [list(c) for r in (1, 2) for c in itertools.combinations(lits, r)]
        for clauses in itertools.combinations(all_clauses, 3):
            clauses = [list(c) for c in clauses]
            with self.subTest(clauses=clauses):
                result = solve_cnf(clauses, nvar=2)
                self.assertEqual(isinstance(result, Sat), brute_force_satisfiable(clauses, 2))


class TestDriver(unittest.TestCase):
    def test_solver_is_single_use(self):
        solver = make_solver([[1]], 1)
        solver.solve_()
        with self.assertRaises(InvalidStateError):
            solver.solve_()

    def test_node_budget(self):
        solver = make_solver([[1], [-1, 2], [-2]], 2)
        solver.max_nodes = 1
        self.assertEqual(solver.solve_(), Lbool.UNDEF)
        self.assertEqual(solver.model, [])
        self.assertEqual(solver.formula.depth, 0)

    def test_node_budget_large_enough(self):
        solver = make_solver([[1], [-1, 2], [-2]], 2)
        solver.max_nodes = 5
        self.assertEqual(solver.solve_(), Lbool.FALSE)

    def test_time_budget(self):
        solver = make_solver([[1, 2], [-1, 2], [1, -2]], 2)
        solver.time_limit = 5.0
        with mock.patch("time.perf_counter", side_effect=itertools.count(0.0, 10.0)):
            self.assertEqual(solver.solve_(), Lbool.UNDEF)
        self.assertEqual(solver.formula.depth, 0)

    def test_deep_search_exceeds_default_recursion_limit(self):
        nvar = 1500
        clauses = [[v] for v in range(1, nvar + 1)]
        solver = make_solver(clauses, nvar)
        self.assertEqual(solver.solve_(), Lbool.TRUE)
        self.assertEqual(solver.model, [True] * nvar)
        self.assertEqual(solver.max_depth, nvar)

    def test_verbose_output_matches_trace(self):
        solver = make_solver([[1], [-1, 2], [-2]], 2)
        solver.verbosity = 2
        solver.record_entire_trace = True
        out = io.StringIO()
        with redirect_stdout(out):
            solver.solve_()
        self.assertIn("Number of variables", out.getvalue())
        self.assertEqual(extract_trace(out.getvalue()), solver.trace.strip())

    def test_key_trace_matches_full_trace(self):
        rng = np.random.default_rng(99)
        for trial in range(40):
            clauses = generate_sat_problem(7, 25, 3, planted=False, rng=rng)
            solver = make_solver(clauses, 7)
            solver.record_entire_trace = True
            solver.solve_()
            with self.subTest(trial=trial):
                self.assertEqual(get_key_trace(solver.trace),
                                 convert_keytrace_to_str(solver.key_trace_events))

    def test_complete_model(self):
        self.assertEqual(complete_model([None, False, True]), [True, False, True])
        self.assertEqual(complete_model([None], default_value=False), [False])

    def test_solve_cnf(self):
        self.assertEqual(solve_cnf([[1], [-1]]), UNSAT)
        self.assertEqual(solve_cnf([[1, 2], [-1, 2], [1, -2]]), Sat([True, True]))
        self.assertEqual(solve_cnf([[2]], nvar=3, default_value=False), Sat([True, True, False]))
        self.assertEqual(solve_cnf([[1]], nvar=3, default_value=False), Sat([True, False, False]))


if __name__ == '__main__':
    unittest.main()
