# *************************************************************************
# SPDX-License-Identifier: Apache-2.0
# Licensed under the Apache License, Version 2.0.
# See the LICENSE file in the project root for the full license text.
# *************************************************************************
"""
Unit tests for the decision trace helpers.
"""
import unittest

from cnf_utils.trace_utils import (convert_keytrace_to_str, extract_trace, extract_numbers_in_order,
                                   get_key_trace, key_trace_assignment)


class TestTraceUtils(unittest.TestCase):
    def test_convert_keytrace_to_str(self):
        events = [('D', 1, 1), ('D', 2, 2), ('BT', -2, 2), ('X', 9, 9)]
        self.assertEqual(convert_keytrace_to_str(events), "D 1 L 1 D 2 L 2 BT -2 L 2")
        self.assertEqual(convert_keytrace_to_str([]), "")

    def test_extract_trace(self):
        output = "=== banner ===\nD 1 L 1 D 2 L 2 BT -2 L 2 \nUNSATISFIABLE"
        self.assertEqual(extract_trace(output), "D 1 L 1 D 2 L 2 BT -2 L 2")

    def test_extract_numbers_in_order(self):
        self.assertEqual(extract_numbers_in_order("D 3 L 1 BT -3 L 1 D 5 L 2"), [3, -3, 5])

    def test_get_key_trace(self):
        cases = [
            ("", ""),
            ("D 1 L 1 D 2 L 2", "D 1 L 1 D 2 L 2"),
            ("D 1 L 1 D 2 L 2 BT -2 L 2", "D 1 L 1 BT -2 L 2"),
            ("D 1 L 1 D 2 L 2 BT -2 L 2 BT -1 L 1 D 2 L 2", "BT -1 L 1 D 2 L 2"),
            ("D 1 L 1 D 2 L 2 D 3 L 3 BT -3 L 3 BT -2 L 2", "D 1 L 1 BT -2 L 2"),
        ]
        for trace, expected in cases:
            with self.subTest(trace=trace):
                self.assertEqual(get_key_trace(trace), expected)

    def test_get_key_trace_rejects_garbage(self):
        for trace in ("A 1", "D 1 X 1", "D 1 L"):
            with self.subTest(trace=trace):
                with self.assertRaises(ValueError):
                    get_key_trace(trace)

    def test_key_trace_assignment(self):
        self.assertEqual(key_trace_assignment("BT -1 L 1 D 2 L 2"), {1: False, 2: True})


if __name__ == '__main__':
    unittest.main()
