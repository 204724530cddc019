from dataclasses import dataclass

from ..exceptions import InvalidParameter

MAX_LINK_INDEX = 7


@dataclass(frozen=True)
class LinkSpec:
    """User supplied link descriptor: ``[address=]<addr>[,priority=<n>]``."""

    address: str
    priority: int | None = None

    def __str__(self) -> str:
        return print_link(self)


def parse_link(value: str | None) -> LinkSpec | None:
    """Parse a link descriptor, returning ``None`` for empty input."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    address = None
    priority = None
    for i, part in enumerate(value.split(",")):
        part = part.strip()
        if "=" in part:
            key, val = (s.strip() for s in part.split("=", 1))
        elif i == 0:
            key, val = "address", part
        else:
            raise InvalidParameter(f"invalid link format '{value}'")
        if key == "address":
            if not val or address is not None:
                raise InvalidParameter(f"invalid link address in '{value}'")
            address = val
        elif key == "priority":
            try:
                priority = int(val)
            except ValueError:
                raise InvalidParameter(f"invalid link priority '{val}'")
            if not 0 <= priority <= 255:
                raise InvalidParameter(f"link priority {priority} out of range 0-255")
        else:
            raise InvalidParameter(f"unknown link option '{key}'")
    if address is None:
        raise InvalidParameter(f"link '{value}' has no address")
    return LinkSpec(address=address, priority=priority)


def print_link(link: LinkSpec) -> str:
    if link.priority is None:
        return link.address
    return f"address={link.address},priority={link.priority}"


def extract_links(params: dict) -> dict[int, LinkSpec]:
    """Collect ``link0`` .. ``link7`` arguments from ``params``."""
    links = {}
    for num in range(MAX_LINK_INDEX + 1):
        link = parse_link(params.get(f"link{num}"))
        if link is not None:
            links[num] = link
    return links
