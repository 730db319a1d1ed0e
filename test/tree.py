"""
Command tree tests (node linking, lookups, symbol identity).

Scope
- add(): unique names and aliases under a parent, single parent per node.
- find/get_command/get_option/matches and full_name/path.
- recursive options visible from their node downwards, in root-first order.
- symbols: dashed names, display names, default providers, unique dests.

Conventions
- Test method names follow CamelCase per project convention.
- Trees are assembled by hand; the builder is covered in builder.py.
"""

import unittest
from unittest import TestCase

from sigil import ArgumentSymbol, CommandNode, OptionSymbol
from sigil.descriptors import Arity
from sigil.values import IntType, StrType


def option(name, /, **options):
    return OptionSymbol(name, StrType(), Arity(1, 1), **options)


class TestLinking(TestCase):
    def setUp(self):
        self.root = CommandNode("tool", "A tool")
        self.order = self.root.add(CommandNode("order", aliases=["o"]))
        self.create = self.order.add(CommandNode("create"))

    def testParentsAndPaths(self):
        self.assertIs(self.create.parent, self.order)
        self.assertIs(self.create.root, self.root)
        self.assertEqual([node.name for node in self.create.path], ["tool", "order", "create"])
        self.assertEqual(self.create.full_name, "order create")
        self.assertTrue(self.root.is_root)
        self.assertFalse(self.create.is_root)

    def testDuplicateNamesAndAliasesRaise(self):
        with self.assertRaises(ValueError):
            self.root.add(CommandNode("order"))
        with self.assertRaises(ValueError):
            self.root.add(CommandNode("o"))
        with self.assertRaises(ValueError):
            self.root.add(CommandNode("other", aliases=["order"]))

    def testNodesHaveOneParent(self):
        with self.assertRaises(ValueError):
            self.root.add(self.create)

    def testLookups(self):
        self.assertIs(self.root.find("o"), self.order)
        self.assertIsNone(self.root.find("create"))
        self.assertIs(self.root.get_command("o create"), self.create)
        self.assertIs(self.root.get_command("tool order create"), self.create)
        self.assertIs(self.root.get_command(""), self.root)
        self.assertIsNone(self.root.get_command("order delete"))
        self.assertTrue(self.order.matches("o"))

    def testChildrenAreReadOnlyCopies(self):
        self.root.children.clear()
        self.assertEqual(list(self.root.children), ["order"])

    def testRichReprOmitsParent(self):
        self.assertNotIn("parent", dict(self.create.__rich_repr__()))
        self.assertTrue(repr(self.create).startswith("command-node(name='create'"))


class TestSymbols(TestCase):
    def testOptionNames(self):
        symbol = option("verbose", aliases=["v", "--loud"])
        self.assertEqual(symbol.names, ("--verbose", "-v", "--loud"))
        self.assertEqual(symbol.display, "--verbose")
        for name in ("verbose", "--verbose", "-v", "v", "loud"):
            self.assertTrue(symbol.matches(name))
        self.assertFalse(symbol.matches("quiet"))

    def testArgumentNames(self):
        symbol = ArgumentSymbol("path", StrType(), Arity(1, 1))
        self.assertEqual(symbol.display, "path")
        self.assertTrue(symbol.matches("path"))
        self.assertFalse(symbol.matches("--path"))

    def testDefaultProviderIsEvaluatedOnRead(self):
        state = {"value": 1}
        symbol = OptionSymbol("count", IntType(), Arity(1, 1), default=lambda: state["value"])
        state["value"] = 2
        self.assertTrue(symbol.has_default)
        self.assertEqual(symbol.get_default(), 2)
        self.assertIsNone(option("name").get_default())

    def testDestinationsAreUnique(self):
        self.assertNotEqual(option("name").dest, option("name").dest)


class TestRecursiveOptions(TestCase):
    def setUp(self):
        self.root = CommandNode("tool")
        self.group = self.root.add(CommandNode("group"))
        self.leaf = self.group.add(CommandNode("leaf"))
        self.sibling = self.root.add(CommandNode("sibling"))
        self.verbose = self.root.add_option(option("verbose"), recursive=True)
        self.store = self.group.add_option(option("store"), recursive=True)
        self.name = self.leaf.add_option(option("name"))
        self.path = self.leaf.add_argument(ArgumentSymbol("path", StrType(), Arity(1, 1)))

    def testInheritedRootFirst(self):
        self.assertEqual(self.leaf.inherited_options, (self.verbose, self.store))
        self.assertEqual(self.sibling.inherited_options, (self.verbose,))

    def testVisibleSymbols(self):
        self.assertEqual(self.leaf.visible_symbols, (self.verbose, self.store, self.name, self.path))

    def testGetOptionSearchesUpwards(self):
        self.assertIs(self.leaf.get_option("--store"), self.store)
        self.assertIs(self.leaf.get_option("name"), self.name)
        self.assertIsNone(self.sibling.get_option("store"))
        self.assertIsNone(self.leaf.get_option("path"))


if __name__ == "__main__":
    unittest.main()
