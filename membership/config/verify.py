from typing import Callable

from .document import ClusterConfigDocument, link_key


def verify_config(
    doc: ClusterConfigDocument | None,
    resolve: Callable[[str], str | None] | None = None,
) -> tuple[list[str], list[str]]:
    """Check ``doc`` for problems that would break the cluster on restart.

    Returns ``(errors, warnings)``. ``resolve`` maps a link address to the IP
    the group-communication daemon would use; when omitted addresses are not
    checked for resolvability.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if doc is None or not doc.nodelist:
        errors.append("no nodes found")
        return errors, warnings
    totem = doc.totem
    if totem is None or not totem.cluster_name:
        errors.append("no totem found")
        return errors, warnings

    crypto = totem.options.get("crypto_cipher")
    if totem.secauth != "on" and (crypto is None or crypto == "none"):
        warnings.append(
            "warning: authentication/encryption is not explicitly enabled"
            " (secauth / crypto_cipher / crypto_hash)"
        )

    names = sorted(doc.nodelist)
    interfaces = totem.interface

    for name in names:
        node = doc.nodelist[name]
        for num, addr in sorted(node.links.items()):
            if interfaces and num not in interfaces:
                errors.append(
                    f"node '{name}' has link {num} configured, but totem has no"
                    f" interface with linknumber {num}"
                )
            if resolve is None:
                continue
            resolved = resolve(addr)
            key = link_key(num)
            if resolved is None:
                warnings.append(
                    f"warning: unable to resolve {key} '{addr}' for node '{name}'"
                    " to an IP address - cluster could fail on restart!"
                )
            elif resolved != addr:
                warnings.append(
                    f"warning: {key} '{addr}' for node '{name}' resolves to"
                    f" '{resolved}' - consider replacing it with the currently"
                    " resolved IP address for stability"
                )

    for num in sorted(interfaces):
        for name in names:
            if doc.nodelist[name].address(num) is None:
                errors.append(f"node '{name}' is missing address for link {num}")

    seen_ids: dict[int, str] = {}
    seen_addrs: dict[str, str] = {}
    for name in names:
        node = doc.nodelist[name]
        if node.nodeid < 1:
            errors.append(f"node '{name}' has invalid nodeid {node.nodeid}")
        other = seen_ids.setdefault(node.nodeid, name)
        if other != name:
            errors.append(f"nodeid {node.nodeid} used by both '{other}' and '{name}'")
        for num, addr in sorted(node.links.items()):
            other = seen_addrs.setdefault(addr, name)
            if other != name:
                errors.append(
                    f"address '{addr}' ({link_key(num)}) used by both '{other}' and '{name}'"
                )

    return errors, warnings
