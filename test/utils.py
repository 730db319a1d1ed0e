"""
Tests for the shared utilities.

This module verifies:
- Unset: singleton identity, falsy semantics, copy identity, union
  syntax with types, finality.
- coalesce: only Unset is replaced.
- rename: both forms and argument validation.
- mirror: read-only properties with detached mutable containers.
- unwrap: staticmethod/classmethod resolution.
"""
import copy
import unittest
from unittest import TestCase

from sigil.utils import *


class UnsetTest(TestCase):
    """
    Test suite for the `Unset` sentinel.
    """

    def testSingleton(self) -> None:
        """
        The constructor returns the exported instance on every call.
        """
        self.assertIs(UnsetType(), Unset)
        self.assertIs(UnsetType(), UnsetType())

    def testFalsy(self) -> None:
        """
        Unset is falsy without being equal to other falsy values.
        """
        self.assertFalse(Unset)
        self.assertNotEqual(Unset, None)
        self.assertNotEqual(Unset, False)

    def testRepr(self) -> None:
        self.assertEqual(repr(Unset), "Unset")

    def testCopyPreservesIdentity(self) -> None:
        """
        Shallow and deep copies return the singleton itself.
        """
        self.assertIs(copy.copy(Unset), Unset)
        self.assertIs(copy.deepcopy([Unset])[0], Unset)

    def testUnionWithTypes(self) -> None:
        """
        `str | Unset` builds a union usable with isinstance().
        """
        self.assertIsInstance("text", str | Unset)
        self.assertIsInstance(Unset, str | Unset)
        self.assertNotIsInstance(1, str | Unset)

    def testFinal(self) -> None:
        with self.assertRaises(TypeError):
            type("Subclass", (UnsetType,), {})


class CoalesceTest(TestCase):
    def testReplacesOnlyUnset(self) -> None:
        self.assertEqual(coalesce(Unset, "fallback"), "fallback")
        self.assertIsNone(coalesce(Unset))
        for value in (None, 0, "", [], False):
            with self.subTest(value=value):
                self.assertIs(coalesce(value, "fallback"), value)


class RenameTest(TestCase):
    def testDirectForm(self) -> None:
        def function():
            pass

        self.assertIs(rename(function, "renamed"), function)
        self.assertEqual((function.__name__, function.__qualname__), ("renamed", "renamed"))

    def testDecoratorForm(self) -> None:
        @rename("renamed")
        def function():
            pass

        self.assertEqual(function.__name__, "renamed")

    def testInvalidArguments(self) -> None:
        with self.assertRaises(TypeError):
            rename()
        with self.assertRaises(TypeError):
            rename(42, "name")
        with self.assertRaises(TypeError):
            rename(len, "name")
        with self.assertRaises(TypeError):
            rename(42)


class MirrorTest(TestCase):
    class Holder:
        items = mirror("items")
        count = mirror("count")

        def __init__(self):
            self._items = ["a", {"b": ["c"]}]
            self._count = 1

    def testReadOnly(self) -> None:
        holder = self.Holder()
        with self.assertRaises(AttributeError):
            holder.count = 2

    def testMutableContainersAreDetached(self) -> None:
        """
        Nested mutable containers are copied on every read.
        """
        holder = self.Holder()
        holder.items[1]["b"].append("d")
        self.assertEqual(holder.items, ["a", {"b": ["c"]}])

    def testNameMustBeAString(self) -> None:
        with self.assertRaises(TypeError):
            mirror(1)


class UnwrapTest(TestCase):
    def testResolvesMethodWrappers(self) -> None:
        def function():
            pass

        self.assertIs(unwrap(staticmethod(function)), function)
        self.assertIs(unwrap(classmethod(function)), function)
        self.assertIs(unwrap(function), function)


if __name__ == "__main__":
    unittest.main()
