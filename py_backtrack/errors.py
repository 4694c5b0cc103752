# *************************************************************************
# SPDX-License-Identifier: Apache-2.0
# Licensed under the Apache License, Version 2.0.
# See the LICENSE file in the project root for the full license text.
# *************************************************************************
"""
Exceptions raised by the backtracking solver and its DIMACS reader.
"""
from typing import Optional


class FormatError(ValueError):
    """
    Malformed CNF input: bad problem line, garbled token, unterminated clause,
    out-of-range literal.

    Attributes:
        line_no: 1-based line of the offending input, when known.
    """
    def __init__(self, message: str, line_no: Optional[int] = None):
        self.line_no = line_no
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)


class InvalidStateError(RuntimeError):
    """
    The search driver broke the assign/undo contract, e.g. assigned a variable
    twice or undid a variable that is not the most recent assignment.
    """


class SearchBudgetExceeded(RuntimeError):
    """Raised inside the search when the node or time budget runs out."""
    def __init__(self, message: str, nodes: int = 0, elapsed: float = 0.0):
        self.nodes = nodes
        self.elapsed = elapsed
        super().__init__(f"{message} (nodes={nodes}, elapsed={elapsed:.3f}s)")
