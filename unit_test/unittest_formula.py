# *************************************************************************
# SPDX-License-Identifier: Apache-2.0
# Licensed under the Apache License, Version 2.0.
# See the LICENSE file in the project root for the full license text.
# *************************************************************************
"""
Unit tests for the CNF snapshot and the assign/undo engine of Formula.
"""
import unittest

import numpy as np
from pysat.formula import CNF

from py_backtrack.errors import FormatError, InvalidStateError
from py_backtrack.formula import CnfSnapshot, Formula, Lbool
from generate_dataset.gen_cnf_buckets import generate_sat_problem


def capture_state(formula: Formula):
    return (
        formula.depth,
        [list(c) for c in formula.live],
        list(formula.vars),
        [list(f.active) for f in formula.frames],
    )


class TestCnfSnapshot(unittest.TestCase):
    def test_valid_snapshot(self):
        snap = CnfSnapshot(3, [[1, -2], [3]])
        self.assertEqual(snap.nvar, 3)
        self.assertEqual(snap.nclauses, 2)
        self.assertEqual(snap.clauses, ((1, -2), (3,)))

    def test_snapshot_is_copied(self):
        clauses = [[1, 2]]
        snap = CnfSnapshot(2, clauses)
        clauses[0][0] = -1
        self.assertEqual(snap.clauses, ((1, 2),))

    def test_rejects_malformed_input(self):
        cases = {
            "negative nvar": (-1, []),
            "empty clause": (2, [[1], []]),
            "zero literal": (2, [[1, 0, 2]]),
            "out of range": (2, [[1, 3]]),
            "negative out of range": (2, [[-3]]),
            "non-integer literal": (2, [["1"]]),
            "bool literal": (2, [[True]]),
        }
        for name, (nvar, clauses) in cases.items():
            with self.subTest(case=name):
                with self.assertRaises(FormatError):
                    CnfSnapshot(nvar, clauses)

    def test_from_clauses_infers_nvar(self):
        snap = CnfSnapshot.from_clauses([[1, -4], [2]])
        self.assertEqual(snap.nvar, 4)
        self.assertEqual(CnfSnapshot.from_clauses([]).nvar, 0)
        self.assertEqual(CnfSnapshot.from_clauses([[1]], nvar=5).nvar, 5)

    def test_from_pysat(self):
        cnf = CNF(from_clauses=[[1, -2], [2, 3]])
        snap = CnfSnapshot.from_pysat(cnf)
        self.assertEqual(snap.nvar, 3)
        self.assertEqual(snap.clauses, ((1, -2), (2, 3)))

    def test_accepts_numpy_integers(self):
        snap = CnfSnapshot(np.int64(2), [[np.int64(1), np.int32(-2)]])
        self.assertEqual(snap.clauses, ((1, -2),))

    def test_to_dimacs(self):
        snap = CnfSnapshot(2, [[1, -2], [2]])
        self.assertEqual(snap.to_dimacs(), "p cnf 2 2\n1 -2 0\n2 0\n")


class TestFormula(unittest.TestCase):
    def setUp(self):
        self.snapshot = CnfSnapshot(3, [[1, -2, 3], [-1, 2], [2, 3]])
        self.formula = Formula(self.snapshot)

    def test_initial_state(self):
        f = self.formula
        self.assertEqual(f.depth, 0)
        self.assertEqual(f.active_clauses(), [0, 1, 2])
        self.assertEqual(f.assignment(), [None, None, None])
        self.assertFalse(f.is_empty())
        self.assertFalse(f.has_empty_clause())
        self.assertEqual(f.select_branch_var(), 1)

    def test_set_var_true_satisfies_and_falsifies(self):
        f = self.formula
        f.set_var(1, True)
        self.assertEqual(f.depth, 1)
        self.assertEqual(f.active_clauses(), [1, 2])
        self.assertEqual(f.live_clause(1), [0, 2])
        self.assertEqual(f.live_clause(2), [2, 3])
        self.assertTrue(f.value(1))
        self.assertEqual(f.select_branch_var(), 2)

    def test_set_var_false(self):
        f = self.formula
        f.set_var(2, False)
        self.assertEqual(f.active_clauses(), [1, 2])
        self.assertEqual(f.live_clause(1), [-1, 0])
        self.assertEqual(f.live_clause(2), [0, 3])
        self.assertIs(f.value(2), False)
        self.assertEqual(f.vars[2], Lbool.FALSE)
        self.assertEqual(f.select_branch_var(), 1)

    def test_unset_restores_state(self):
        f = self.formula
        before = capture_state(f)
        f.set_var(1, True)
        f.set_var(3, False)
        f.unset(3)
        f.unset(1)
        self.assertEqual(capture_state(f), before)
        self.assertEqual([tuple(c) for c in f.live], list(self.snapshot.clauses))

    def test_str_shows_live_active_clauses(self):
        f = self.formula
        self.assertEqual(str(f), "1\t-2\t3\n-1\t2\n2\t3")
        f.set_var(1, True)
        self.assertEqual(str(f), "0\t2\n2\t3")
        f.unset(1)
        self.assertEqual(str(f), "1\t-2\t3\n-1\t2\n2\t3")

    def test_frames_record_decisions(self):
        f = self.formula
        self.assertEqual((f.frames[0].var, f.frames[0].value), (0, None))
        f.set_var(2, False)
        f.set_var(3, True)
        self.assertEqual([(fr.var, fr.value) for fr in f.frames], [(0, None), (2, False), (3, True)])
        self.assertEqual(repr(f.frames[-1]), "Frame(var=3, value=True, active=1, zeroed=0)")

    def test_retract_returns_variable(self):
        f = self.formula
        f.set_var(2, True)
        f.set_var(1, False)
        self.assertEqual(f.retract(), 1)
        self.assertEqual(f.retract(), 2)
        self.assertEqual(f.depth, 0)

    def test_contract_violations(self):
        f = self.formula
        with self.assertRaises(InvalidStateError):
            f.unset(1)
        with self.assertRaises(InvalidStateError):
            f.retract()
        f.set_var(1, True)
        with self.assertRaises(InvalidStateError):
            f.set_var(1, False)
        f.set_var(2, True)
        with self.assertRaises(InvalidStateError):
            f.unset(1)
        for bad in (0, 4, -1):
            with self.subTest(var=bad):
                with self.assertRaises(InvalidStateError):
                    f.set_var(bad, True)
        # A failed call leaves the state alone.
        self.assertEqual(f.depth, 2)

    def test_has_empty_clause(self):
        f = Formula(CnfSnapshot(2, [[1], [-1, 2]]))
        f.set_var(1, False)
        self.assertEqual(f.live_clause(0), [0])
        self.assertTrue(f.has_empty_clause())
        f.unset(1)
        self.assertFalse(f.has_empty_clause())

    def test_satisfied_clause_is_not_a_conflict(self):
        f = Formula(CnfSnapshot(1, [[1]]))
        f.set_var(1, True)
        self.assertTrue(f.is_empty())
        self.assertFalse(f.has_empty_clause())

    def test_is_empty_with_unassigned_variables(self):
        f = Formula(CnfSnapshot(3, [[1, -2, 3]]))
        f.set_var(1, True)
        self.assertTrue(f.is_empty())
        self.assertEqual(f.assignment(), [True, None, None])

    def test_no_clauses(self):
        for nvar in (0, 4):
            with self.subTest(nvar=nvar):
                f = Formula(CnfSnapshot(nvar, []))
                self.assertTrue(f.is_empty())
                self.assertFalse(f.has_empty_clause())
        self.assertIsNone(Formula(CnfSnapshot(0, [])).select_branch_var())

    def test_select_branch_var_none_when_all_assigned(self):
        f = Formula(CnfSnapshot(2, [[1, 2]]))
        f.set_var(2, False)
        f.set_var(1, False)
        self.assertIsNone(f.select_branch_var())

    def test_duplicate_literals(self):
        f = Formula(CnfSnapshot(2, [[-1, -1, 2]]))
        f.set_var(1, True)
        self.assertEqual(f.live_clause(0), [0, 0, 2])
        f.set_var(2, False)
        self.assertTrue(f.has_empty_clause())
        f.unset(2)
        f.unset(1)
        self.assertEqual(f.live_clause(0), [-1, -1, 2])

    def test_tautology_is_satisfied_either_way(self):
        for value in (True, False):
            with self.subTest(value=value):
                f = Formula(CnfSnapshot(1, [[1, -1]]))
                f.set_var(1, value)
                self.assertTrue(f.is_empty())

    def test_clauses_leave_monotonically(self):
        f = Formula(CnfSnapshot(3, [[1, 2], [2, 3], [-1, 3], [-3]]))
        previous = set(f.active_clauses())
        for var, value in ((1, True), (2, False), (3, True)):
            f.set_var(var, value)
            current = set(f.active_clauses())
            self.assertTrue(current <= previous)
            previous = current

    def test_live_slots_match_assignment(self):
        rng = np.random.default_rng(7)
        for trial in range(20):
            clauses = generate_sat_problem(6, 14, 3, planted=False, rng=rng)
            f = Formula(CnfSnapshot(6, clauses))
            order = [int(v) + 1 for v in rng.permutation(6)[:4]]
            for var in order:
                f.set_var(var, bool(rng.integers(0, 2)))
            with self.subTest(trial=trial):
                for idx, clause in enumerate(clauses):
                    satisfied = any(f.value(abs(l)) == (l > 0) for l in clause if f.value(abs(l)) is not None)
                    self.assertEqual(idx in f.active_clauses(), not satisfied)
                    if not satisfied:
                        expected = [0 if f.value(abs(l)) is not None else l for l in clause]
                        self.assertEqual(f.live_clause(idx), expected)
                conflict = any(not any(f.live[idx]) for idx in f.active_clauses())
                self.assertEqual(f.has_empty_clause(), conflict)

    def test_set_then_unset_is_exact_for_every_variable(self):
        rng = np.random.default_rng(11)
        for trial in range(10):
            clauses = generate_sat_problem(5, 12, 3, planted=False, rng=rng)
            f = Formula(CnfSnapshot(5, clauses))
            for var in (3, 1):
                f.set_var(var, bool(rng.integers(0, 2)))
            before = capture_state(f)
            for var in range(1, 6):
                if f.value(var) is not None:
                    continue
                for value in (True, False):
                    with self.subTest(trial=trial, var=var, value=value):
                        f.set_var(var, value)
                        f.unset(var)
                        self.assertEqual(capture_state(f), before)


if __name__ == '__main__':
    unittest.main()
