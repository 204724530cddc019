"""Pure operations on the in-memory node list."""

from ..config.document import NodeEntry, link_key
from ..config.links import LinkSpec
from ..exceptions import DuplicateAddress, DuplicateNodeId

# only links 0 and 1 are compared for address collisions
CHECKED_LINKS = (0, 1)


def allocate_nodeid(nodelist: dict[str, NodeEntry]) -> int:
    """Return the smallest positive node id not yet in use."""
    used = {entry.nodeid for entry in nodelist.values()}
    nodeid = 1
    while nodeid in used:
        nodeid += 1
    return nodeid


def check_duplicate_address(
    nodelist: dict[str, NodeEntry], name: str, link: LinkSpec | None
) -> None:
    """Raise ``DuplicateAddress`` if another node already uses ``link``.

    The node called ``name`` itself is skipped so a forced re-add keeps its
    addresses.
    """
    if link is None or not link.address:
        return
    for other, entry in nodelist.items():
        if other == name:
            continue
        for num in CHECKED_LINKS:
            if entry.address(num) == link.address:
                raise DuplicateAddress(
                    f"corosync: address '{link.address}' already used on link"
                    f" {link_key(num)} by node '{other}'"
                )


def check_duplicate_nodeid(
    nodelist: dict[str, NodeEntry], name: str, nodeid: int
) -> None:
    for other, entry in nodelist.items():
        if other != name and entry.nodeid == nodeid:
            raise DuplicateNodeId(f"nodeid {nodeid} already used by node '{other}'")


def find_node(nodelist: dict[str, NodeEntry], identifier: str) -> NodeEntry | None:
    """Look up a node by name or by any of its link 0/1 addresses."""
    for name, entry in nodelist.items():
        if name == identifier:
            return entry
        if any(entry.address(num) == identifier for num in CHECKED_LINKS):
            return entry
    return None


def sorted_nodes(nodelist: dict[str, NodeEntry]) -> list[NodeEntry]:
    return [nodelist[name] for name in sorted(nodelist)]
