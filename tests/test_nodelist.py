import os
import sys
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from membership.config.document import NodeEntry
from membership.config.links import LinkSpec, extract_links, parse_link, print_link
from membership.exceptions import DuplicateAddress, DuplicateNodeId, InvalidParameter
from membership.registry.nodelist import (
    allocate_nodeid,
    check_duplicate_address,
    check_duplicate_nodeid,
    find_node,
    sorted_nodes,
)


def _nodes(*entries):
    return {e.name: e for e in entries}


class NodeIdAllocationTest(unittest.TestCase):
    def test_fills_first_gap(self):
        nodes = _nodes(
            NodeEntry("a", 1),
            NodeEntry("b", 2),
            NodeEntry("c", 4),
        )
        self.assertEqual(allocate_nodeid(nodes), 3)

    def test_empty_list_starts_at_one(self):
        self.assertEqual(allocate_nodeid({}), 1)

    def test_dense_list_appends(self):
        nodes = _nodes(NodeEntry("a", 2), NodeEntry("b", 1), NodeEntry("c", 3))
        self.assertEqual(allocate_nodeid(nodes), 4)


class DuplicateAddressTest(unittest.TestCase):
    def setUp(self):
        self.nodes = _nodes(
            NodeEntry("a", 1, links={0: "10.0.0.2", 1: "10.1.0.2"}),
            NodeEntry("b", 2, links={0: "10.0.0.3"}),
        )

    def test_address_on_same_link_rejected(self):
        with self.assertRaises(DuplicateAddress) as ctx:
            check_duplicate_address(self.nodes, "new", LinkSpec("10.0.0.2"))
        self.assertIn("ring0_addr", str(ctx.exception))
        self.assertIn("'a'", str(ctx.exception))

    def test_address_on_other_link_rejected(self):
        with self.assertRaises(DuplicateAddress):
            check_duplicate_address(self.nodes, "new", LinkSpec("10.1.0.2"))

    def test_own_entry_ignored(self):
        check_duplicate_address(self.nodes, "a", LinkSpec("10.0.0.2"))

    def test_missing_link_ignored(self):
        check_duplicate_address(self.nodes, "new", None)

    def test_links_above_one_not_compared(self):
        nodes = _nodes(NodeEntry("a", 1, links={0: "10.0.0.2", 2: "10.2.0.2"}))
        check_duplicate_address(nodes, "new", LinkSpec("10.2.0.2"))

    def test_duplicate_nodeid(self):
        with self.assertRaises(DuplicateNodeId):
            check_duplicate_nodeid(self.nodes, "new", 2)
        check_duplicate_nodeid(self.nodes, "b", 2)


class FindNodeTest(unittest.TestCase):
    def test_find_by_name_or_address(self):
        nodes = _nodes(
            NodeEntry("a", 1, links={0: "10.0.0.1"}),
            NodeEntry("b", 2, links={0: "10.0.0.2", 1: "10.1.0.2"}),
        )
        self.assertEqual(find_node(nodes, "a").nodeid, 1)
        self.assertEqual(find_node(nodes, "10.0.0.2").name, "b")
        self.assertEqual(find_node(nodes, "10.1.0.2").name, "b")
        self.assertIsNone(find_node(nodes, "10.9.9.9"))

    def test_sorted_by_name(self):
        nodes = _nodes(NodeEntry("c", 1), NodeEntry("a", 3), NodeEntry("b", 2))
        self.assertEqual([n.name for n in sorted_nodes(nodes)], ["a", "b", "c"])


class LinkParsingTest(unittest.TestCase):
    def test_plain_address(self):
        self.assertEqual(parse_link("10.0.0.1"), LinkSpec("10.0.0.1"))

    def test_address_with_priority(self):
        link = parse_link("address=10.0.0.1,priority=20")
        self.assertEqual(link.address, "10.0.0.1")
        self.assertEqual(link.priority, 20)
        self.assertEqual(print_link(link), "address=10.0.0.1,priority=20")

    def test_empty_values(self):
        self.assertIsNone(parse_link(None))
        self.assertIsNone(parse_link("  "))

    def test_invalid_values(self):
        for value in ["priority=3", "10.0.0.1,priority=300", "10.0.0.1,foo=1", "10.0.0.1,x"]:
            with self.subTest(value=value):
                with self.assertRaises(InvalidParameter):
                    parse_link(value)

    def test_extract_links(self):
        links = extract_links({"link0": "10.0.0.1", "link1": None, "link3": "10.3.0.1"})
        self.assertEqual(sorted(links), [0, 3])


if __name__ == "__main__":
    unittest.main()
