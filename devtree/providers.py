"""Checks of phandle-with-arguments properties, interrupts and graphs."""

from __future__ import annotations

from dataclasses import dataclass

from .checkbase import Check, is_multiple_of
from .data import MarkerType
from .tree import Bus, DtInfo, Node, Property, node_addr_cells, phandle_is_valid

_CELL = 4

GRAPH_PORT_BUS = Bus("graph-port")
GRAPH_PORTS_BUS = Bus("graph-ports")


@dataclass(frozen=True)
class Provider:
    """A property holding phandles, and the cell-count property of its targets."""

    prop_name: str
    cell_name: str
    optional: bool = False


def property_phandle_args(
    check: Check, dti: DtInfo, node: Node, prop: Property, provider: Provider
) -> None:
    length = len(prop.val)
    if not is_multiple_of(length, _CELL):
        check.fail(
            dti,
            node,
            f"property size ({length}) is invalid, expected multiple of {_CELL}",
            prop,
        )
        return

    root = dti.dt
    cell = 0
    while cell < length // _CELL:
        phandle = prop.cell_n(cell)
        # A 0 or -1 cell may skip over an optional entry.
        if not phandle_is_valid(phandle):
            if dti.plugin:
                break
            cell += 1
            continue

        if prop.val.markers:
            if not any(
                m.offset == cell * _CELL
                for m in prop.val.markers_of_type(MarkerType.REF_PHANDLE)
            ):
                check.fail(
                    dti, node, f"cell {cell} is not a phandle reference", prop
                )

        provider_node = root.get_node_by_phandle(phandle)
        if provider_node is None:
            check.fail(
                dti, node, f"Could not get phandle node for (cell {cell})", prop
            )
            break

        cellprop = provider_node.get_property(provider.cell_name)
        if cellprop is not None:
            cellsize = cellprop.cell()
        elif provider.optional:
            cellsize = 0
        else:
            check.fail(
                dti,
                node,
                f"Missing property '{provider.cell_name}' in node "
                f"{provider_node.fullpath} or bad phandle "
                f"(referred from {prop.name}[{cell}])",
            )
            break

        expected = (cell + cellsize + 1) * _CELL
        if length < expected:
            check.fail(
                dti,
                node,
                f"property size ({length}) too small for cell size {cellsize}",
                prop,
            )
            break
        cell += cellsize + 1


def provider_cells_property(check: Check, dti: DtInfo, node: Node) -> None:
    """Check the property described by the :class:`Provider` in ``check.data``."""
    provider: Provider = check.data
    prop = node.get_property(provider.prop_name)
    if prop is not None:
        property_phandle_args(check, dti, node, prop, provider)


def prop_is_gpio(name: str) -> bool:
    # "*,nr-gpios" is a known false match.
    if name.endswith(",nr-gpios"):
        return False
    return (
        name.endswith("-gpios")
        or name == "gpios"
        or name.endswith("-gpio")
        or name == "gpio"
    )


def gpios_property(check: Check, dti: DtInfo, node: Node) -> None:
    # GPIO hog nodes carry a 'gpios' property of their own kind.
    if node.get_property("gpio-hog") is not None:
        return
    for prop in list(node.live_properties()):
        if prop_is_gpio(prop.name):
            property_phandle_args(
                check, dti, node, prop, Provider(prop.name, "#gpio-cells")
            )


def deprecated_gpio_property(check: Check, dti: DtInfo, node: Node) -> None:
    for prop in node.live_properties():
        if prop_is_gpio(prop.name) and prop.name.endswith("gpio"):
            check.fail(
                dti, node, "'[*-]gpio' is deprecated, use '[*-]gpios' instead", prop
            )


def node_is_interrupt_provider(node: Node) -> bool:
    return (
        node.get_property("interrupt-controller") is not None
        or node.get_property("interrupt-map") is not None
    )


def interrupt_provider(check: Check, dti: DtInfo, node: Node) -> None:
    irq_provider = node_is_interrupt_provider(node)
    prop = node.get_property("#interrupt-cells")
    if irq_provider and prop is None:
        check.fail(dti, node, "Missing '#interrupt-cells' in interrupt provider")
    elif not irq_provider and prop is not None:
        check.fail(
            dti,
            node,
            "'#interrupt-cells' found, but node is not an interrupt provider",
        )


def interrupt_map(check: Check, dti: DtInfo, node: Node) -> None:
    irq_map = node.get_property("interrupt-map")
    if irq_map is None:
        return
    if node.addr_cells < 0:
        check.fail(dti, node, "Missing '#address-cells' in interrupt-map provider")
        return

    irq_cells = node.get_property("#interrupt-cells")
    cellsize = node_addr_cells(node) + (irq_cells.cell() if irq_cells else 0)

    mask = node.get_property("interrupt-map-mask")
    if mask is not None and len(mask.val) != cellsize * _CELL:
        check.fail(
            dti,
            node,
            f"property size ({len(mask.val)}) is invalid, expected {cellsize * _CELL}",
            mask,
        )

    length = len(irq_map.val)
    if not is_multiple_of(length, _CELL):
        check.fail(
            dti,
            node,
            f"property size ({length}) is invalid, expected multiple of {_CELL}",
            irq_map,
        )
        return

    root = dti.dt
    map_cells = length // _CELL
    cell = 0
    while cell < map_cells:
        if cell + cellsize >= map_cells:
            check.fail(
                dti,
                node,
                f"property size ({length}) too small, "
                f"expected > {(cell + cellsize) * _CELL}",
                irq_map,
            )
            break
        cell += cellsize

        phandle = irq_map.cell_n(cell)
        if not phandle_is_valid(phandle):
            if not dti.plugin:
                check.fail(
                    dti, node, f"Cell {cell} is not a phandle({phandle})", irq_map
                )
            break

        provider_node = root.get_node_by_phandle(phandle)
        if provider_node is None:
            check.fail(
                dti,
                node,
                f"Could not get phandle({phandle}) node for (cell {cell})",
                irq_map,
            )
            break

        cellprop = provider_node.get_property("#interrupt-cells")
        if cellprop is None:
            check.fail(
                dti,
                node,
                "Missing property '#interrupt-cells' in node "
                f"{provider_node.fullpath} or bad phandle "
                f"(referred from interrupt-map[{cell}])",
            )
            break
        parent_cellsize = cellprop.cell()
        addrprop = provider_node.get_property("#address-cells")
        if addrprop is not None:
            parent_cellsize += addrprop.cell()

        cell += 1 + parent_cellsize
        if cell > map_cells:
            check.fail(
                dti,
                node,
                f"property size ({length}) mismatch, expected {cell * _CELL}",
                irq_map,
            )


def interrupts_property(check: Check, dti: DtInfo, node: Node) -> None:
    irq_prop = node.get_property("interrupts")
    if irq_prop is None:
        return
    length = len(irq_prop.val)
    if not is_multiple_of(length, _CELL):
        check.fail(
            dti,
            node,
            f"size ({length}) is invalid, expected multiple of {_CELL}",
            irq_prop,
        )

    root = dti.dt
    irq_node: Node | None = None
    parent: Node | None = node
    while parent is not None:
        if parent is not node and node_is_interrupt_provider(parent):
            irq_node = parent
            break
        prop = parent.get_property("interrupt-parent")
        if prop is not None:
            phandle = prop.cell()
            if not phandle_is_valid(phandle):
                if dti.plugin:
                    return
                check.fail(dti, parent, "Invalid phandle", prop)
                break
            irq_node = root.get_node_by_phandle(phandle)
            if irq_node is None:
                check.fail(dti, parent, "Bad phandle", prop)
                return
            if not node_is_interrupt_provider(irq_node):
                check.fail(
                    dti,
                    irq_node,
                    "Missing interrupt-controller or interrupt-map property",
                )
            break
        parent = parent.parent

    if irq_node is None:
        check.fail(dti, node, "Missing interrupt-parent")
        return

    prop = irq_node.get_property("#interrupt-cells")
    if prop is None:
        # Reported by another check.
        return
    irq_cells = prop.cell()
    if not is_multiple_of(length, irq_cells * _CELL):
        check.fail(
            dti,
            node,
            f"size is ({length}), expected multiple of {irq_cells * _CELL}",
            prop,
        )


def graph_nodes(check: Check, dti: DtInfo, node: Node) -> None:
    for child in node.live_children():
        if not (
            child.basename == "endpoint"
            or child.get_property("remote-endpoint") is not None
        ):
            continue
        if node.parent is None:
            check.fail(
                dti,
                node,
                f"root node contains endpoint node '{child.name}', "
                "potentially misplaced remote-endpoint property",
            )
            continue
        node.bus = GRAPH_PORT_BUS
        # The parent of a port is either 'ports' or a device.
        if node.parent.bus is None and (
            node.parent.name == "ports" or node.get_property("reg") is not None
        ):
            node.parent.bus = GRAPH_PORTS_BUS
        break


def _graph_reg(check: Check, dti: DtInfo, node: Node) -> None:
    prop = node.get_property("reg")
    if prop is None:
        return
    if len(prop.val) != _CELL:
        check.fail(dti, node, "graph node malformed 'reg' property")
        return
    expected = f"{prop.cell():x}"
    if node.unitname != expected:
        check.fail(dti, node, f'graph node unit address error, expected "{expected}"')
    if node.parent.addr_cells != 1:
        check.fail(
            dti,
            node,
            f"graph node '#address-cells' is {node.parent.addr_cells}, must be 1",
            node.get_property("#address-cells"),
        )
    if node.parent.size_cells != 0:
        check.fail(
            dti,
            node,
            f"graph node '#size-cells' is {node.parent.size_cells}, must be 0",
            node.get_property("#size-cells"),
        )


def graph_port(check: Check, dti: DtInfo, node: Node) -> None:
    if node.bus is not GRAPH_PORT_BUS:
        return
    _graph_reg(check, dti, node)
    if dti.plugin:
        return
    if node.basename != "port":
        check.fail(dti, node, "graph port node name should be 'port'")


def _remote_endpoint(check: Check, dti: DtInfo, endpoint: Node) -> Node | None:
    prop = endpoint.get_property("remote-endpoint")
    if prop is None:
        return None
    phandle = prop.cell()
    if not phandle_is_valid(phandle):
        return None
    remote = dti.dt.get_node_by_phandle(phandle)
    if remote is None:
        check.fail(dti, endpoint, "graph phandle is not valid", prop)
    return remote


def graph_endpoint(check: Check, dti: DtInfo, node: Node) -> None:
    if node.parent is None or node.parent.bus is not GRAPH_PORT_BUS:
        return
    _graph_reg(check, dti, node)
    if dti.plugin:
        return
    if node.basename != "endpoint":
        check.fail(dti, node, "graph endpoint node name should be 'endpoint'")
    remote = _remote_endpoint(check, dti, node)
    if remote is None:
        return
    if _remote_endpoint(check, dti, remote) is not node:
        check.fail(
            dti,
            node,
            f"graph connection to node '{remote.fullpath}' is not bidirectional",
        )


def graph_child_address(check: Check, dti: DtInfo, node: Node) -> None:
    if node.bus is not GRAPH_PORTS_BUS and node.bus is not GRAPH_PORT_BUS:
        return
    children = list(node.live_children())
    for child in children:
        prop = child.get_property("reg")
        # Any non-zero unit address makes the cells necessary.
        if prop is not None and prop.cell() != 0:
            return
    if len(children) == 1 and node.addr_cells != -1:
        check.fail(
            dti,
            node,
            f"graph node has single child node '{children[0].name}', "
            "#address-cells/#size-cells are not necessary",
        )