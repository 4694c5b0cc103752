# *************************************************************************
# SPDX-License-Identifier: Apache-2.0
# Licensed under the Apache License, Version 2.0.
# See the LICENSE file in the project root for the full license text.
# *************************************************************************
"""
CNF formula with assign/undo support for backtracking search.

A ``CnfSnapshot`` holds the original clauses and never changes. A ``Formula``
keeps two parallel copies of every clause: the pristine literals from the
snapshot and a live copy whose slots are overwritten with 0 when the literal
becomes false. Each assignment pushes a frame that lists the clause indices
still unsatisfied and the (clause, slot) positions it zeroed, so undoing the
assignment replays exactly those writes.
"""
import numbers

from typing import Iterable, List, Optional, Sequence, Tuple

from py_backtrack.errors import FormatError, InvalidStateError


# In Minisat: l_True = 0, l_False = 1, l_Undef = 2
class Lbool:
    TRUE = 0
    FALSE = 1
    UNDEF = 2


def lbool(val: Optional[bool]) -> int:
    if val is True:
        return Lbool.TRUE
    if val is False:
        return Lbool.FALSE
    return Lbool.UNDEF


def to_bool(value: int) -> Optional[bool]:
    if value == Lbool.TRUE:
        return True
    if value == Lbool.FALSE:
        return False
    return None


class CnfSnapshot:
    """
    Immutable variable count and clause list of a CNF formula.

    Args:
        nvar: Number of variables; literals range over [-nvar, -1] and [1, nvar].
        clauses: Iterable of non-empty clauses, each a sequence of non-zero ints.

    Raises:
        FormatError: If nvar is negative or a clause is empty, holds a zero,
            a non-integer or a literal whose magnitude exceeds nvar.
    """
    __slots__ = ("_nvar", "_clauses")

    def __init__(self, nvar: int, clauses: Iterable[Sequence[int]]):
        if isinstance(nvar, bool) or not isinstance(nvar, numbers.Integral) or nvar < 0:
            raise FormatError(f"number of variables must be a non-negative integer, got {nvar!r}")
        nvar = int(nvar)

        checked = []
        for idx, clause in enumerate(clauses):
            lits = []
            for lit in clause:
                if isinstance(lit, bool) or not isinstance(lit, numbers.Integral):
                    raise FormatError(f"clause {idx}: literal {lit!r} is not an integer")
                lit = int(lit)
                if lit == 0:
                    raise FormatError(f"clause {idx}: literal 0 is reserved as clause terminator")
                if abs(lit) > nvar:
                    raise FormatError(f"clause {idx}: literal {lit} out of range for {nvar} variables")
                lits.append(lit)
            if not lits:
                raise FormatError(f"clause {idx} is empty")
            checked.append(tuple(lits))

        self._nvar = nvar
        self._clauses = tuple(checked)

    @classmethod
    def from_clauses(cls, clauses: Iterable[Sequence[int]], nvar: Optional[int] = None) -> 'CnfSnapshot':
        """Build a snapshot, inferring nvar as the largest literal magnitude when not given."""
        clauses = [list(c) for c in clauses]
        if nvar is None:
            nvar = max((abs(int(lit)) for c in clauses for lit in c), default=0)
        return cls(nvar, clauses)

    @classmethod
    def from_pysat(cls, cnf) -> 'CnfSnapshot':
        """Build a snapshot from a ``pysat.formula.CNF``."""
        return cls(cnf.nv, cnf.clauses)

    @property
    def nvar(self) -> int:
        return self._nvar

    @property
    def clauses(self) -> Tuple[Tuple[int, ...], ...]:
        return self._clauses

    @property
    def nclauses(self) -> int:
        return len(self._clauses)

    def to_dimacs(self) -> str:
        lines = [f"p cnf {self._nvar} {len(self._clauses)}"]
        for clause in self._clauses:
            lines.append(" ".join(str(lit) for lit in clause) + " 0")
        return "\n".join(lines) + "\n"

    def __eq__(self, other) -> bool:
        if not isinstance(other, CnfSnapshot):
            return NotImplemented
        return self._nvar == other._nvar and self._clauses == other._clauses

    def __hash__(self):
        return hash((self._nvar, self._clauses))

    def __repr__(self) -> str:
        return f"CnfSnapshot(nvar={self._nvar}, nclauses={len(self._clauses)})"


class Frame:
    """
    One level of the backtracking stack.

    Attributes:
        var: Variable bound by this frame (0 for the root frame).
        value: Value given to ``var`` (None for the root frame).
        active: Indices of clauses not yet satisfied at this depth.
        zeroed: (clause index, slot) pairs this frame overwrote with 0.
    """
    __slots__ = ("var", "value", "active", "zeroed")

    def __init__(self, var: int, value: Optional[bool], active: List[int], zeroed: List[Tuple[int, int]]):
        self.var = var
        self.value = value
        self.active = active
        self.zeroed = zeroed

    def __repr__(self) -> str:
        return f"Frame(var={self.var}, value={self.value}, active={len(self.active)}, zeroed={len(self.zeroed)})"


class Formula:
    """
    Live clause store, current assignment and backtracking stack of one search.

    Assignments and undos must nest: ``unset`` only accepts the variable of the
    most recent ``set_var``. ``retract`` undoes the most recent assignment
    without naming it.
    """
    def __init__(self, snapshot: CnfSnapshot):
        self.snapshot = snapshot
        self.nvar = snapshot.nvar
        self.pristine = snapshot.clauses
        self.live = [list(clause) for clause in self.pristine]
        self.vars = [Lbool.UNDEF] * (self.nvar + 1)
        self.frames = [Frame(0, None, list(range(len(self.pristine))), [])]

    @property
    def depth(self) -> int:
        """Number of variables currently assigned."""
        return len(self.frames) - 1

    def value(self, var: int) -> Optional[bool]:
        self._check_range(var)
        return to_bool(self.vars[var])

    def assignment(self) -> List[Optional[bool]]:
        """Values of variables 1..nvar; None marks unassigned."""
        return [to_bool(v) for v in self.vars[1:]]

    def active_clauses(self) -> List[int]:
        return list(self.frames[-1].active)

    def live_clause(self, idx: int) -> List[int]:
        return list(self.live[idx])

    def _check_range(self, var: int):
        if isinstance(var, bool) or not isinstance(var, numbers.Integral) or not 1 <= var <= self.nvar:
            raise InvalidStateError(f"variable {var!r} out of range [1, {self.nvar}]")

    def in_clause(self, idx: int, lit: int) -> bool:
        """True iff the pristine clause ``idx`` contains ``lit``."""
        return lit in self.pristine[idx]

    def set_var(self, var: int, value: bool):
        """
        Assign ``var`` and simplify every active clause.

        Clauses containing the now-true literal leave the new frame; in the
        remaining ones every slot holding the now-false literal is zeroed.

        Raises:
            InvalidStateError: If ``var`` is out of range or already assigned.
        """
        self._check_range(var)
        if self.vars[var] != Lbool.UNDEF:
            raise InvalidStateError(f"variable {var} is already assigned")

        value = bool(value)
        true_lit = var if value else -var
        false_lit = -true_lit

        active = []
        zeroed = []
        for idx in self.frames[-1].active:
            if self.in_clause(idx, true_lit):
                continue
            active.append(idx)
            live = self.live[idx]
            for slot, lit in enumerate(live):
                if lit == false_lit:
                    live[slot] = 0
                    zeroed.append((idx, slot))

        self.frames.append(Frame(var, value, active, zeroed))
        self.vars[var] = lbool(value)

    def unset(self, var: int):
        """
        Undo the assignment of ``var``, which must be the most recent one.

        Raises:
            InvalidStateError: If nothing is assigned or ``var`` is not the
                variable of the top frame.
        """
        if not self.depth:
            raise InvalidStateError(f"cannot unset variable {var}: nothing is assigned")
        top = self.frames[-1]
        if top.var != var:
            raise InvalidStateError(
                f"cannot unset variable {var}: most recent assignment is variable {top.var}")
        self._pop()

    def retract(self) -> int:
        """Undo the most recent assignment and return its variable."""
        if not self.depth:
            raise InvalidStateError("cannot retract: nothing is assigned")
        return self._pop()

    def _pop(self) -> int:
        frame = self.frames.pop()
        for idx, slot in frame.zeroed:
            self.live[idx][slot] = self.pristine[idx][slot]
        self.vars[frame.var] = Lbool.UNDEF
        return frame.var

    def has_empty_clause(self) -> bool:
        """True iff some active clause has every live slot zeroed."""
        live = self.live
        return any(not any(live[idx]) for idx in self.frames[-1].active)

    def is_empty(self) -> bool:
        """True iff every clause is satisfied by the current assignment."""
        return not self.frames[-1].active

    def select_branch_var(self) -> Optional[int]:
        """Lowest-indexed unassigned variable, or None when all are assigned."""
        for i in range(1, self.nvar + 1):
            if self.vars[i] == Lbool.UNDEF:
                return i
        return None

    def __str__(self) -> str:
        rows = []
        for idx in self.frames[-1].active:
            rows.append("\t".join(str(lit) for lit in self.live[idx]))
        return "\n".join(rows)
