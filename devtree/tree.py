"""The live device tree: nodes, properties and lookups over them."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Iterator

from .data import Data, Marker, MarkerType

_CELL = 4


def phandle_is_valid(phandle: int) -> bool:
    """A phandle is valid unless it is 0 or all ones."""
    phandle &= 0xFFFFFFFF
    return phandle not in (0, 0xFFFFFFFF)


@dataclass(frozen=True)
class Bus:
    """A bus type detected on a node."""

    name: str


@dataclass(eq=False)
class Property:
    name: str
    val: Data = field(default_factory=Data)
    labels: list[str] = field(default_factory=list)
    srcpos: list[str] = field(default_factory=list)
    deleted: bool = False

    @property
    def text(self) -> str:
        """The value up to its first NUL, as text."""
        raw = bytes(self.val.val)
        return raw.split(b"\0", 1)[0].decode("latin-1")

    def cell(self) -> int:
        """The value as a single 32-bit cell."""
        if len(self.val) != _CELL:
            raise ValueError(f"property {self.name!r} is not a single cell")
        return struct.unpack(">I", self.val.val)[0]

    def cell_n(self, n: int) -> int:
        """The ``n``-th 32-bit cell of the value."""
        if not 0 <= n < len(self.val) // _CELL:
            raise IndexError(f"cell {n} out of range in property {self.name!r}")
        return struct.unpack_from(">I", self.val.val, n * _CELL)[0]


@dataclass(eq=False)
class Node:
    name: str = ""
    properties: list[Property] = field(default_factory=list)
    children: list[Node] = field(default_factory=list, repr=False)
    parent: Node | None = field(default=None, repr=False)
    labels: list[str] = field(default_factory=list)
    srcpos: list[str] = field(default_factory=list)
    phandle: int = 0
    addr_cells: int = -1
    size_cells: int = -1
    bus: Bus | None = None
    omit_if_unused: bool = False
    is_referenced: bool = False
    deleted: bool = False

    @property
    def fullpath(self) -> str:
        if self.parent is None:
            return "/"
        if self.parent.parent is None:
            return "/" + self.name
        return f"{self.parent.fullpath}/{self.name}"

    @property
    def basenamelen(self) -> int:
        at = self.name.find("@")
        return len(self.name) if at < 0 else at

    @property
    def basename(self) -> str:
        return self.name[: self.basenamelen]

    @property
    def unitname(self) -> str:
        """The part of the name after the first '@', or ''."""
        _, _, unit = self.name.partition("@")
        return unit

    def add_child(self, child: Node) -> Node:
        child.parent = self
        self.children.append(child)
        return child

    def add_property(self, prop: Property) -> Property:
        self.properties.append(prop)
        return prop

    def live_properties(self) -> Iterator[Property]:
        return (p for p in self.properties if not p.deleted)

    def live_children(self) -> Iterator[Node]:
        return (c for c in list(self.children) if not c.deleted)

    def get_property(self, name: str) -> Property | None:
        return next((p for p in self.live_properties() if p.name == name), None)

    def get_subnode(self, name: str) -> Node | None:
        return next((c for c in self.live_children() if c.name == name), None)

    def delete(self) -> None:
        """Delete this node, its properties and its whole subtree."""
        for prop in self.properties:
            prop.deleted = True
        for child in list(self.children):
            child.delete()
        self.deleted = True
        if self.parent is not None and self in self.parent.children:
            self.parent.children.remove(self)

    def walk(self) -> Iterator[Node]:
        """Yield this node and every live descendant, depth first."""
        if self.deleted:
            return
        yield self
        for child in self.live_children():
            yield from child.walk()

    def get_node_by_path(self, path: str) -> Node | None:
        if not path:
            return None if self.deleted else self
        path = path.lstrip("/")
        if not path:
            return None if self.deleted else self
        head, sep, rest = path.partition("/")
        for child in self.live_children():
            if child.name == head:
                return child.get_node_by_path(rest) if sep else child
        return None

    def get_node_by_label(self, label: str) -> Node | None:
        if label in self.labels:
            return self
        for child in self.live_children():
            found = child.get_node_by_label(label)
            if found is not None:
                return found
        return None

    def get_node_by_phandle(self, phandle: int) -> Node | None:
        if not phandle_is_valid(phandle):
            return None
        phandle &= 0xFFFFFFFF
        return next((n for n in self.walk() if n.phandle == phandle), None)

    def get_node_by_ref(self, ref: str) -> Node | None:
        """Resolve a path, a label, or a label followed by a path."""
        if ref == "/":
            return self
        if ref.startswith("/"):
            return self.get_node_by_path(ref)
        label, sep, path = ref.partition("/")
        target = self.get_node_by_label(label)
        if target is None or not sep:
            return target
        return target.get_node_by_path(path)

    def get_property_by_label(self, label: str) -> tuple[Node, Property] | None:
        for node in self.walk():
            for prop in node.live_properties():
                if label in prop.labels:
                    return node, prop
        return None

    def get_marker_label(self, label: str) -> tuple[Node, Property, Marker] | None:
        for node in self.walk():
            for prop in node.live_properties():
                for marker in prop.val.markers_of_type(MarkerType.LABEL):
                    if marker.ref == label:
                        return node, prop, marker
        return None

    def get_node_phandle(self, node: Node) -> int:
        """Return ``node``'s phandle, assigning an unused one if needed."""
        if phandle_is_valid(node.phandle):
            return node.phandle
        phandle = 1
        while self.get_node_by_phandle(phandle) is not None:
            phandle += 1
        node.phandle = phandle
        if node.get_property("phandle") is None:
            value = Data().add_marker(MarkerType.TYPE_UINT32).append_cell(phandle)
            node.add_property(Property("phandle", value))
        return node.phandle


@dataclass
class DtInfo:
    """A parsed tree together with the settings that checks consult."""

    dt: Node
    outname: str = "-"
    plugin: bool = False
    generate_symbols: bool = False
    quiet: int = 0


def node_addr_cells(node: Node) -> int:
    return 2 if node.addr_cells == -1 else node.addr_cells


def node_size_cells(node: Node) -> int:
    return 1 if node.size_cells == -1 else node.size_cells