#!/usr/bin/env python3
import ast
import os
import unittest
from typing import List


class TestPluginsHaveUnitTests(unittest.TestCase):
    """
    Every plugin module must have a matching unittest module under
    tests/unit/<plugin_dir>/ whose name starts with test_<module>.
    """

    PLUGIN_DIRS = ("filter_plugins", "lookup_plugins", "module_utils")

    def setUp(self) -> None:
        # repo root = two levels up from tests/lint/<this_file>.py
        self.repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

    def _plugin_modules(self, plugin_dir: str) -> List[str]:
        base = os.path.join(self.repo_root, plugin_dir)
        if not os.path.isdir(base):
            return []
        return sorted(
            fn[:-3]
            for fn in os.listdir(base)
            if fn.endswith(".py") and not fn.startswith("_")
        )

    def _test_files(self, plugin_dir: str) -> List[str]:
        base = os.path.join(self.repo_root, "tests", "unit", plugin_dir)
        if not os.path.isdir(base):
            return []
        return sorted(fn for fn in os.listdir(base) if fn.startswith("test_") and fn.endswith(".py"))

    def _has_test_method(self, path: str) -> bool:
        with open(path, "r", encoding="utf-8") as f:
            tree = ast.parse(f.read(), filename=path)
        for node in ast.walk(tree):
            if isinstance(node, ast.ClassDef):
                for item in node.body:
                    if isinstance(item, ast.FunctionDef) and item.name.startswith("test_"):
                        return True
        return False

    def test_every_plugin_has_a_test_module(self):
        missing = []
        for plugin_dir in self.PLUGIN_DIRS:
            tests = self._test_files(plugin_dir)
            for module in self._plugin_modules(plugin_dir):
                if not any(t.startswith(f"test_{module}") for t in tests):
                    missing.append(f"{plugin_dir}/{module}.py")
        self.assertEqual(missing, [], f"Plugins without unit tests: {missing}")

    def test_unit_test_modules_contain_tests(self):
        empty = []
        for plugin_dir in self.PLUGIN_DIRS:
            base = os.path.join(self.repo_root, "tests", "unit", plugin_dir)
            for fn in self._test_files(plugin_dir):
                if not self._has_test_method(os.path.join(base, fn)):
                    empty.append(f"tests/unit/{plugin_dir}/{fn}")
        self.assertEqual(empty, [], f"Test modules without test methods: {empty}")


if __name__ == "__main__":
    unittest.main()
