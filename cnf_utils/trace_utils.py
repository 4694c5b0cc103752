"""
This file includes some help functions for decision traces of the backtracking solver.

A trace is a flat string of decision tokens:
  * "D <lit> L <level>"  first branch of a variable (positive literal),
  * "BT <lit> L <level>" the flipped branch after the first one failed.

This module provides small helpers to:
  * convert recorded (etype, lit, level) events into a trace string,
  * extract a compact "key trace" that survives backtracking,
  * read ordered decision literals from a trace string,
  * rebuild the partial assignment a key trace describes.
"""
import re

from typing import Dict, List, Tuple


TRACE_PATTERN = re.compile(r'(?:D|BT)\s+-?\d+\s+L\s+\d+')


def convert_keytrace_to_str(events: List[Tuple[str, int, int]]) -> str:
    """
    Converts a list of tuples like:
        [('D', 1, 1), ('D', 2, 2), ('BT', -2, 2)]
    into a string like:
        "D 1 L 1 D 2 L 2 BT -2 L 2"
    """
    out_tokens = []
    for etype, val, lvl in events:
        if etype in ("D", "BT"):
            out_tokens.extend([etype, str(val), "L", str(lvl)])
    return " ".join(out_tokens)


def extract_trace(solver_output: str) -> str:
    """
    Pulls the decision tokens out of verbose solver output.

    Args:
        solver_output (str): Text printed by the solver with verbosity 2.

    Returns:
        str: The extracted trace as a single string.
    """
    return ' '.join(TRACE_PATTERN.findall(solver_output))


def extract_numbers_in_order(trace_string: str) -> List[int]:
    """
    Extracts the decision literals in order of the trace.

    Args:
        trace_string: A string of traces.

    Returns:
        A list of signed integers.
    """
    pattern = r'(?:D|BT)\s+(-?\d+)'
    return [int(m) for m in re.findall(pattern, trace_string)]


def get_key_trace(trace: str) -> str:
    """
    Reduce an entire trace to the decisions still on the current search path.

    A 'BT' at level k replaces the decision made at level k, so every step at
    level k or deeper is dropped before it is appended.

    Args:
        trace: A string represents the entire trace.

    Returns:
        str: The extracted key trace as a single string.
    """
    tokens = trace.split()
    index = 0
    stack = []
    while index < len(tokens):
        token = tokens[index]
        if token not in ('D', 'BT'):
            raise ValueError(f"Unknown token '{token}'")
        if index + 3 >= len(tokens) or tokens[index + 2] != 'L':
            raise ValueError(f"Expected '<lit> L <level>' after '{token}'")
        lit = tokens[index + 1]
        level = int(tokens[index + 3])

        if token == 'BT':
            stack = [(lvl, s) for (lvl, s) in stack if lvl < level]
        stack.append((level, [token, lit, 'L', str(level)]))
        index += 4

    final_trace = []
    for _, step in stack:
        final_trace.extend(step)
    return ' '.join(final_trace)


def key_trace_assignment(key_trace: str) -> Dict[int, bool]:
    """
    Map each variable decided in a key trace to its value, e.g.
    "D 1 L 1 BT -2 L 2" -> {1: True, 2: False}.
    """
    return {abs(lit): lit > 0 for lit in extract_numbers_in_order(key_trace)}
