from .editor import NodeRegistryEditor
from .nodelist import allocate_nodeid, check_duplicate_address, find_node

__all__ = ["NodeRegistryEditor", "allocate_nodeid", "check_duplicate_address", "find_node"]
