# *************************************************************************
# SPDX-License-Identifier: Apache-2.0
# Licensed under the Apache License, Version 2.0.
# See the LICENSE file in the project root for the full license text.
# *************************************************************************
"""
Unit tests for the DIMACS reader and the command-line runner.
"""
import gzip
import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout, redirect_stderr

from py_backtrack.errors import FormatError
from py_backtrack.formula import CnfSnapshot
from py_backtrack.run_backtrack import (parse_dimacs_string, parse_dimacs_backtrack, main,
                                        EXIT_SAT, EXIT_UNSAT, EXIT_INDET, EXIT_FORMAT_ERROR)


EXAMPLE = """c example
c two comment lines
p cnf 3 3
1 -2 0
2 3
 -1 0
-3 0
"""


class TestParseDimacs(unittest.TestCase):
    def test_parse_example(self):
        snap = parse_dimacs_string(EXAMPLE)
        self.assertEqual(snap, CnfSnapshot(3, [[1, -2], [2, 3, -1], [-3]]))

    def test_percent_ends_clause_data(self):
        snap = parse_dimacs_string("p cnf 2 1\n1 2 0\n%\n0\n")
        self.assertEqual(snap.clauses, ((1, 2),))

    def test_no_clauses(self):
        snap = parse_dimacs_string("c nothing\np cnf 4 0\n")
        self.assertEqual(snap.nvar, 4)
        self.assertEqual(snap.nclauses, 0)

    def test_format_errors(self):
        cases = {
            "missing header": "1 2 0\n",
            "empty input": "",
            "bad header": "p cnf x 2\n1 0\n2 0\n",
            "wrong format": "p dnf 2 1\n1 0\n",
            "short header": "p cnf 2\n1 0\n",
            "duplicate header": "p cnf 2 1\np cnf 2 1\n1 0\n",
            "literal out of range": "p cnf 2 1\n1 3 0\n",
            "garbled token": "p cnf 2 1\n1 a 0\n",
            "unterminated clause": "p cnf 2 2\n1 0\n2\n",
            "empty clause": "p cnf 2 2\n1 0\n0\n",
            "too few clauses": "p cnf 2 3\n1 0\n2 0\n",
            "too many clauses": "p cnf 2 1\n1 0\n2 0\n",
        }
        for name, text in cases.items():
            with self.subTest(case=name):
                with self.assertRaises(FormatError):
                    parse_dimacs_string(text)

    def test_error_reports_line(self):
        with self.assertRaises(FormatError) as ctx:
            parse_dimacs_string("c hi\np cnf 2 1\n1 7 0\n")
        self.assertEqual(ctx.exception.line_no, 3)
        self.assertIn("line 3", str(ctx.exception))

    def test_read_plain_and_gzip_files(self):
        with tempfile.TemporaryDirectory() as tmp:
            plain = os.path.join(tmp, "example.cnf")
            with open(plain, "w") as f:
                f.write(EXAMPLE)
            packed = os.path.join(tmp, "example.cnf.gz")
            with gzip.open(packed, "wt", encoding="utf-8") as f:
                f.write(EXAMPLE)
            self.assertEqual(parse_dimacs_backtrack(plain), parse_dimacs_backtrack(packed))


class TestMain(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = self._tmp.name
        self.output = os.path.join(self.tmp, "result.txt")

    def tearDown(self):
        self._tmp.cleanup()

    def write_cnf(self, text: str, name: str = "problem.cnf") -> str:
        path = os.path.join(self.tmp, name)
        with open(path, "w") as f:
            f.write(text)
        return path

    def run_main(self, argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            with self.assertRaises(SystemExit) as ctx:
                main(argv)
        return ctx.exception.code, out.getvalue(), err.getvalue()

    def read_output(self) -> str:
        with open(self.output) as f:
            return f.read()

    def test_sat(self):
        path = self.write_cnf("p cnf 2 3\n1 2 0\n-1 2 0\n1 -2 0\n")
        code, out, _ = self.run_main(["-i", path, "-o", self.output, "-v", "0"])
        self.assertEqual(code, EXIT_SAT)
        self.assertIn("SATISFIABLE", out)
        self.assertEqual(self.read_output(), "SAT\n1 2 0\n")

    def test_unsat(self):
        path = self.write_cnf("p cnf 2 3\n1 0\n-1 2 0\n-2 0\n")
        code, out, _ = self.run_main(["-i", path, "-o", self.output, "-v", "0"])
        self.assertEqual(code, EXIT_UNSAT)
        self.assertIn("UNSATISFIABLE", out)
        self.assertEqual(self.read_output(), "UNSAT\n")

    def test_stats_and_trace(self):
        path = self.write_cnf("p cnf 2 3\n1 0\n-1 2 0\n-2 0\n")
        code, out, _ = self.run_main(["-i", path, "-v", "1", "--trace"])
        self.assertEqual(code, EXIT_UNSAT)
        self.assertIn("conflicts             : 3", out)
        self.assertIn("Memory used", out)
        self.assertIn("D 1 L 1 D 2 L 2 BT -2 L 2 BT -1 L 1", out)

    def test_model_on_stdout(self):
        path = self.write_cnf("p cnf 3 1\n1 -2 3 0\n")
        code, out, _ = self.run_main(["-i", path, "-o", "-", "-v", "0"])
        self.assertEqual(code, EXIT_SAT)
        self.assertIn("v 1 2 3 0", out)

    def test_default_value_flag(self):
        path = self.write_cnf("p cnf 3 1\n1 -2 3 0\n")
        code, _, _ = self.run_main(["-i", path, "-o", self.output, "-v", "0", "--default-value", "false"])
        self.assertEqual(code, EXIT_SAT)
        self.assertEqual(self.read_output(), "SAT\n1 -2 -3 0\n")

    def test_config_file(self):
        path = self.write_cnf("p cnf 3 1\n1 -2 3 0\n")
        config = os.path.join(self.tmp, "config.json")
        with open(config, "w") as f:
            json.dump({"default_value": False, "verbosity": 0}, f)
        code, out, _ = self.run_main(["-i", path, "-o", self.output, "--config", config])
        self.assertEqual(code, EXIT_SAT)
        self.assertEqual(self.read_output(), "SAT\n1 -2 -3 0\n")
        self.assertNotIn("Memory used", out)

    def test_config_unknown_key(self):
        path = self.write_cnf("p cnf 1 1\n1 0\n")
        config = os.path.join(self.tmp, "config.json")
        with open(config, "w") as f:
            json.dump({"restarts": 3}, f)
        code, _, err = self.run_main(["-i", path, "--config", config])
        self.assertEqual(code, 2)
        self.assertIn("restarts", err)

    def test_config_value_types(self):
        path = self.write_cnf("p cnf 1 1\n1 0\n")
        config = os.path.join(self.tmp, "config.json")
        cases = [
            ({"verbosity": "1"}, "verbosity"),
            ({"verbosity": 5}, "verbosity"),
            ({"default_value": "false"}, "default_value"),
            ({"max_nodes": 2.5}, "max_nodes"),
            ({"max_nodes": True}, "max_nodes"),
            ({"time_limit": "10"}, "time_limit"),
            ({"record_entire_trace": 1}, "record_entire_trace"),
        ]
        for options, key in cases:
            with self.subTest(options=options):
                with open(config, "w") as f:
                    json.dump(options, f)
                code, _, err = self.run_main(["-i", path, "--config", config])
                self.assertEqual(code, 2)
                self.assertIn(key, err)

    def test_config_accepts_null_and_int_time_limit(self):
        path = self.write_cnf("p cnf 1 1\n1 0\n")
        config = os.path.join(self.tmp, "config.json")
        with open(config, "w") as f:
            json.dump({"verbosity": 0, "time_limit": 5, "max_nodes": None}, f)
        code, _, _ = self.run_main(["-i", path, "-o", self.output, "--config", config])
        self.assertEqual(code, EXIT_SAT)
        self.assertEqual(self.read_output(), "SAT\n1 0\n")

    def test_node_budget(self):
        path = self.write_cnf("p cnf 2 3\n1 0\n-1 2 0\n-2 0\n")
        code, out, _ = self.run_main(["-i", path, "-o", self.output, "-v", "0", "--max-nodes", "1"])
        self.assertEqual(code, EXIT_INDET)
        self.assertIn("INDETERMINATE", out)
        self.assertEqual(self.read_output(), "INDET\n")

    def test_format_error(self):
        path = self.write_cnf("p cnf 1 1\n2 0\n")
        code, _, err = self.run_main(["-i", path, "-o", self.output])
        self.assertEqual(code, EXIT_FORMAT_ERROR)
        self.assertIn("PARSE ERROR", err)
        self.assertFalse(os.path.exists(self.output))

    def test_undecodable_input(self):
        path = os.path.join(self.tmp, "binary.cnf")
        with open(path, "wb") as f:
            f.write(b"p cnf 1 1\n1 \xff 0\n")
        code, _, err = self.run_main(["-i", path, "-o", self.output])
        self.assertEqual(code, EXIT_FORMAT_ERROR)
        self.assertIn("UTF-8", err)
        self.assertFalse(os.path.exists(self.output))

    def test_corrupt_gzip_input(self):
        cases = {
            "not_gzip.cnf.gz": b"p cnf 1 1\n1 0\n",
            "truncated.cnf.gz": gzip.compress(EXAMPLE.encode("utf-8"))[:20],
        }
        for name, data in cases.items():
            with self.subTest(file=name):
                path = os.path.join(self.tmp, name)
                with open(path, "wb") as f:
                    f.write(data)
                code, _, err = self.run_main(["-i", path])
                self.assertEqual(code, EXIT_FORMAT_ERROR)
                self.assertIn("PARSE ERROR", err)


if __name__ == '__main__':
    unittest.main()
