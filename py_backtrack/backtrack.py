# *************************************************************************
# SPDX-License-Identifier: Apache-2.0
# Licensed under the Apache License, Version 2.0.
# See the LICENSE file in the project root for the full license text.
# *************************************************************************
"""
Recursive backtracking search over a ``Formula``.

Each search node either reports success (no active clause left), reports a
conflict (an active clause has all its literals falsified), or branches on the
lowest unassigned variable, trying true first and then false. The recursion
returns ``Sat(model)`` or ``UNSAT`` so success carries its own model.
"""
import sys
import time

from typing import List, Optional, Sequence, Union

from py_backtrack.errors import InvalidStateError, SearchBudgetExceeded
from py_backtrack.formula import CnfSnapshot, Formula, Lbool


STATUS_NAMES = {
    Lbool.TRUE: "SATISFIABLE",
    Lbool.FALSE: "UNSATISFIABLE",
    Lbool.UNDEF: "INDETERMINATE",
}


class Sat:
    """Successful search outcome; ``model`` may hold None for don't-care variables."""
    __slots__ = ("model",)

    def __init__(self, model: List[Optional[bool]]):
        self.model = model

    def __eq__(self, other) -> bool:
        return isinstance(other, Sat) and self.model == other.model

    def __repr__(self) -> str:
        return f"Sat({self.model})"


class Unsat:
    """Failed search outcome: the branch (or the whole formula) has no model."""
    __slots__ = ()

    def __eq__(self, other) -> bool:
        return isinstance(other, Unsat)

    def __hash__(self):
        return hash(Unsat)

    def __repr__(self) -> str:
        return "UNSAT"


UNSAT = Unsat()

SearchResult = Union[Sat, Unsat]


def complete_model(model: Sequence[Optional[bool]], default_value: bool = True) -> List[bool]:
    """Fill don't-care (None) entries of a partial model with ``default_value``."""
    return [default_value if v is None else v for v in model]


class BacktrackSolver:
    """
    Depth-first backtracking SAT solver.

    Options are plain attributes, set after construction:
        verbosity: 0 silent, 1 banner and summary, 2 also prints every decision.
        default_value: Value given to variables left unassigned in a model.
        max_nodes: Stop after this many search nodes (None: unlimited).
        time_limit: Stop after this many seconds (None: unlimited).
        record_entire_trace: Append every decision to ``trace``.
        record_key_trace: Keep ``key_trace_events`` for the current path.

    A solver runs once; ``solve_`` returns Lbool.TRUE, Lbool.FALSE or
    Lbool.UNDEF (budget exhausted) and fills ``model`` on success.
    """
    def __init__(self, snapshot: CnfSnapshot):
        self.snapshot = snapshot
        self.formula = Formula(snapshot)

        self.verbosity = 0
        self.default_value = True
        self.max_nodes = None
        self.time_limit = None

        self.record_entire_trace = False
        self.record_key_trace = True
        self.trace = ''
        self.key_trace_events = []

        # Statistics
        self.nodes = 0
        self.decisions = 0
        self.conflicts = 0
        self.backtracks = 0
        self.max_depth = 0
        self.solve_time = 0.0

        self.model = []
        self.partial_model = []
        self.status = Lbool.UNDEF
        self._solved = False
        self._start_time = 0.0

    def nVars(self) -> int:
        return self.snapshot.nvar

    def nClauses(self) -> int:
        return self.snapshot.nclauses

    def record_event(self, etype: str, lit: int, level: int):
        """
        Record a decision: 'D' for the first branch (true), 'BT' for the
        flipped branch (false) at the same level.
        """
        if self.record_entire_trace:
            self.trace += f'{etype} {lit} L {level} '
        if self.record_key_trace:
            if etype == 'BT':
                self.key_trace_events = [
                    (e, v, lvl) for (e, v, lvl) in self.key_trace_events if lvl < level
                ]
            self.key_trace_events.append((etype, lit, level))
        if self.verbosity >= 2:
            print("{} {} L {} ".format(etype, lit, level), end='')

    def withinBudget(self) -> bool:
        if self.max_nodes is not None and self.nodes > self.max_nodes:
            return False
        if self.time_limit is not None and time.perf_counter() - self._start_time > self.time_limit:
            return False
        return True

    def _assign(self, etype: str, var: int, value: bool):
        self.formula.set_var(var, value)
        self.decisions += 1
        depth = self.formula.depth
        if depth > self.max_depth:
            self.max_depth = depth
        self.record_event(etype, var if value else -var, depth)

    def _unassign(self, var: int):
        self.formula.unset(var)
        self.backtracks += 1

    def search(self) -> SearchResult:
        """
        Explore the subtree below the current partial assignment.

        Returns Sat with the (possibly partial) assignment when every clause is
        satisfied; on Sat the assignments are left in place. Returns UNSAT after
        restoring the formula to the state it had on entry.
        """
        self.nodes += 1
        if not self.withinBudget():
            raise SearchBudgetExceeded("search budget exhausted", self.nodes,
                                       time.perf_counter() - self._start_time)

        formula = self.formula
        if formula.is_empty():
            return Sat(formula.assignment())
        if formula.has_empty_clause():
            self.conflicts += 1
            return UNSAT

        var = formula.select_branch_var()
        if var is None:
            # Every clause is either satisfied or has a zeroed literal when all
            # variables are assigned, so one of the checks above has fired.
            raise InvalidStateError("no branch variable left on an undecided formula")

        self._assign('D', var, True)
        result = self.search()
        if isinstance(result, Sat):
            return result

        self._unassign(var)
        self._assign('BT', var, False)
        result = self.search()
        if isinstance(result, Sat):
            return result

        self._unassign(var)
        return UNSAT

    def solve_(self) -> int:
        if self._solved:
            raise InvalidStateError("solver instances are single-use; build a new one per formula")
        self._solved = True

        if self.verbosity >= 1:
            print("============================[ Problem Statistics ]=============================")
            print("|  Number of variables:  {:12d}                                         |".format(self.nVars()))
            print("|  Number of clauses:    {:12d}                                         |".format(self.nClauses()))
            print("===============================================================================")

        old_limit = sys.getrecursionlimit()
        sys.setrecursionlimit(old_limit + self.nVars() + 64)
        self._start_time = time.perf_counter()
        try:
            result = self.search()
        except SearchBudgetExceeded as e:
            while self.formula.depth:
                self.formula.retract()
            if self.verbosity >= 1:
                print(f"\nStopped: {e}")
            self.status = Lbool.UNDEF
        else:
            if isinstance(result, Sat):
                self.partial_model = result.model
                self.model = complete_model(result.model, self.default_value)
                self.status = Lbool.TRUE
            else:
                self.status = Lbool.FALSE
        finally:
            self.solve_time = time.perf_counter() - self._start_time
            sys.setrecursionlimit(old_limit)

        if self.verbosity >= 2:
            print()
        if self.verbosity >= 1:
            print("===============================================================================")
        return self.status

    def get_statistics(self) -> dict:
        return {
            'nodes': self.nodes,
            'decisions': self.decisions,
            'conflicts': self.conflicts,
            'backtracks': self.backtracks,
            'max_depth': self.max_depth,
            'time_ms': self.solve_time * 1000.0,
        }


def solve_cnf(clauses: Sequence[Sequence[int]], nvar: Optional[int] = None,
              default_value: bool = True) -> SearchResult:
    """
    Solve a clause list in one call.

    Args:
        clauses: Clauses as sequences of non-zero signed ints.
        nvar: Number of variables; inferred from the literals when None.
        default_value: Value for don't-care variables in the model.

    Returns:
        Sat with a total model of length nvar, or UNSAT.
    """
    solver = BacktrackSolver(CnfSnapshot.from_clauses(clauses, nvar))
    solver.default_value = default_value
    if solver.solve_() == Lbool.TRUE:
        return Sat(solver.model)
    return UNSAT
