"""
Utilities module tests (sentinel, coalesce, rename, mirror, camelize).

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import copy
import unittest
from unittest import TestCase

from arbor.utils import Unset, UnsetType, coalesce, rename, mirror, camelize


class TestUnset(TestCase):
    """Sentinel behavior."""

    def testUnsetIsSingleton(self):
        self.assertIs(UnsetType(), Unset)
        self.assertIs(copy.deepcopy(Unset), Unset)

    def testUnsetIsFalseyAndPrintable(self):
        self.assertFalse(Unset)
        self.assertEqual(repr(Unset), "Unset")

    def testUnsetRejectsSubclassing(self):
        with self.assertRaises(TypeError):
            type("Derived", (UnsetType,), {})

    def testUnsetJoinsUnionsInIsinstance(self):
        self.assertTrue(isinstance(Unset, str | Unset))
        self.assertTrue(isinstance("x", str | Unset))
        self.assertFalse(isinstance(1, str | Unset))


class TestHelpers(TestCase):
    """coalesce/rename/mirror/camelize."""

    def testCoalesceKeepsFalseyValues(self):
        self.assertEqual(coalesce(Unset, "fallback"), "fallback")
        self.assertIsNone(coalesce(Unset))
        self.assertIsNone(coalesce(None, "fallback"))
        self.assertEqual(coalesce(0, 5), 0)

    def testRenameBothForms(self):
        def f():
            pass
        self.assertEqual(rename(f, "g").__name__, "g")

        @rename("h")
        def k():
            pass
        self.assertEqual(k.__qualname__, "h")

    def testRenameRejectsBadArity(self):
        with self.assertRaises(TypeError):
            rename()

    def testMirrorHandsOutCopies(self):
        class Box:
            items = mirror("items")

            def __init__(self):
                self._items = ["a", "b"]

        box = Box()
        self.assertEqual(box.items, ("a", "b"))
        with self.assertRaises(AttributeError):
            box.items = ()

    def testCamelize(self):
        self.assertEqual(camelize("dry-run"), "dryRun")
        self.assertEqual(camelize("--max-open-files"), "maxOpenFiles")
        self.assertEqual(camelize("port"), "port")


if __name__ == "__main__":
    unittest.main()
