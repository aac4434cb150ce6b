"""Semantic checks: address/size cells, bus bridges and unit addresses."""

from __future__ import annotations

import string
import struct

from .checkbase import Check, is_multiple_of
from .tree import Bus, DtInfo, Node, Property, node_addr_cells, node_size_cells

_CELL = 4

PCI_BUS = Bus("PCI")
SIMPLE_BUS = Bus("simple-bus")
I2C_BUS = Bus("i2c-bus")
SPI_BUS = Bus("spi-bus")

I2C_OWN_SLAVE_ADDRESS = 1 << 30
I2C_TEN_BIT_ADDRESS = 1 << 31


def _cells(prop: Property) -> list[int]:
    raw = bytes(prop.val.val)
    count = len(raw) // _CELL
    return list(struct.unpack(f">{count}I", raw[: count * _CELL]))


def _cell_at(cells: list[int], index: int) -> int:
    return cells[index] if 0 <= index < len(cells) else 0


def _check_is_string(check: Check, dti: DtInfo, node: Node, propname: str) -> None:
    prop = node.get_property(propname)
    if prop is not None and not prop.val.is_one_string():
        check.fail(dti, node, "property is not a string", prop)


def fixup_addr_size_cells(check: Check, dti: DtInfo, node: Node) -> None:
    node.addr_cells = -1
    node.size_cells = -1
    prop = node.get_property("#address-cells")
    if prop is not None:
        node.addr_cells = prop.cell()
    prop = node.get_property("#size-cells")
    if prop is not None:
        node.size_cells = prop.cell()


def reg_format(check: Check, dti: DtInfo, node: Node) -> None:
    prop = node.get_property("reg")
    if prop is None:
        return
    if node.parent is None:
        check.fail(dti, node, 'Root node has a "reg" property')
        return
    length = len(prop.val)
    if length == 0:
        check.fail(dti, node, "property is empty", prop)
    addr_cells = node_addr_cells(node.parent)
    size_cells = node_size_cells(node.parent)
    entrylen = (addr_cells + size_cells) * _CELL
    if not is_multiple_of(length, entrylen):
        check.fail(
            dti,
            node,
            f"property has invalid length ({length} bytes) "
            f"(#address-cells == {addr_cells}, #size-cells == {size_cells})",
            prop,
        )


def ranges_format(check: Check, dti: DtInfo, node: Node) -> None:
    """Check the property named by ``check.data`` ("ranges" or "dma-ranges")."""
    ranges = check.data
    prop = node.get_property(ranges)
    if prop is None:
        return
    if node.parent is None:
        check.fail(dti, node, f'Root node has a "{ranges}" property', prop)
        return

    p_addr = node_addr_cells(node.parent)
    p_size = node_size_cells(node.parent)
    c_addr = node_addr_cells(node)
    c_size = node_size_cells(node)
    entrylen = (p_addr + c_addr + c_size) * _CELL
    length = len(prop.val)

    if length == 0:
        if p_addr != c_addr:
            check.fail(
                dti,
                node,
                f'empty "{ranges}" property but its #address-cells ({c_addr}) '
                f"differs from {node.parent.fullpath} ({p_addr})",
                prop,
            )
        if p_size != c_size:
            check.fail(
                dti,
                node,
                f'empty "{ranges}" property but its #size-cells ({c_size}) '
                f"differs from {node.parent.fullpath} ({p_size})",
                prop,
            )
    elif not is_multiple_of(length, entrylen):
        check.fail(
            dti,
            node,
            f'"{ranges}" property has invalid length ({length} bytes) '
            f"(parent #address-cells == {p_addr}, child #address-cells == {c_addr}, "
            f"#size-cells == {c_size})",
            prop,
        )


def pci_bridge(check: Check, dti: DtInfo, node: Node) -> None:
    prop = node.get_property("device_type")
    if prop is None or prop.text != "pci":
        return
    node.bus = PCI_BUS

    if node.basename not in ("pci", "pcie"):
        check.fail(dti, node, 'node name is not "pci" or "pcie"')
    if node.get_property("ranges") is None:
        check.fail(dti, node, "missing ranges for PCI bridge (or not a bridge)")
    if node_addr_cells(node) != 3:
        check.fail(dti, node, "incorrect #address-cells for PCI bridge")
    if node_size_cells(node) != 2:
        check.fail(dti, node, "incorrect #size-cells for PCI bridge")

    prop = node.get_property("bus-range")
    if prop is None:
        return
    if len(prop.val) != 2 * _CELL:
        check.fail(dti, node, "value must be 2 cells", prop)
        return
    first, last = _cells(prop)
    if first > last:
        check.fail(dti, node, "1st cell must be less than or equal to 2nd cell", prop)
    if last > 0xFF:
        check.fail(dti, node, "maximum bus number must be less than 256", prop)


def pci_device_bus_num(check: Check, dti: DtInfo, node: Node) -> None:
    if node.parent is None or node.parent.bus is not PCI_BUS:
        return
    prop = node.get_property("reg")
    if prop is None:
        return
    bus_num = (_cell_at(_cells(prop), 0) & 0x00FF0000) >> 16

    prop = node.parent.get_property("bus-range")
    if prop is None:
        min_bus = max_bus = 0
    else:
        cells = _cells(prop)
        min_bus, max_bus = _cell_at(cells, 0), _cell_at(cells, 1)
    if bus_num < min_bus or bus_num > max_bus:
        check.fail(
            dti,
            node,
            f"PCI bus number {bus_num} out of range, expected ({min_bus} - {max_bus})",
            prop,
        )


def pci_device_reg(check: Check, dti: DtInfo, node: Node) -> None:
    if node.parent is None or node.parent.bus is not PCI_BUS:
        return
    prop = node.get_property("reg")
    if prop is None:
        return
    cells = _cells(prop)
    if _cell_at(cells, 1) or _cell_at(cells, 2):
        check.fail(
            dti, node, "PCI reg config space address cells 2 and 3 must be 0", prop
        )

    reg = _cell_at(cells, 0)
    dev = (reg & 0xF800) >> 11
    func = (reg & 0x700) >> 8
    if reg & 0xFF000000:
        check.fail(dti, node, "PCI reg address is not configuration space", prop)
    if reg & 0xFF:
        check.fail(
            dti,
            node,
            "PCI reg config space address register number must be 0",
            prop,
        )

    unitname = node.unitname
    if func == 0 and unitname == f"{dev:x}":
        return
    expected = f"{dev:x},{func:x}"
    if unitname == expected:
        return
    check.fail(dti, node, f'PCI unit address format error, expected "{expected}"')


def node_is_compatible(node: Node, compat: str) -> bool:
    prop = node.get_property("compatible")
    if prop is None:
        return False
    entries = bytes(prop.val.val).split(b"\0")
    return compat.encode("utf-8") in entries


def simple_bus_bridge(check: Check, dti: DtInfo, node: Node) -> None:
    if node_is_compatible(node, "simple-bus"):
        node.bus = SIMPLE_BUS


def simple_bus_reg(check: Check, dti: DtInfo, node: Node) -> None:
    if node.parent is None or node.parent.bus is not SIMPLE_BUS:
        return

    cells: list[int] | None = None
    prop = node.get_property("reg")
    if prop is not None:
        if len(prop.val):
            cells = _cells(prop)
    else:
        prop = node.get_property("ranges")
        if prop is not None and len(prop.val):
            # Skip over the child address.
            cells = _cells(prop)[node_addr_cells(node):]

    if cells is None:
        if node.parent.parent is not None and node.bus is not SIMPLE_BUS:
            check.fail(dti, node, "missing or empty reg/ranges property")
        return

    reg = 0
    for i in range(node_addr_cells(node.parent)):
        reg = ((reg << 32) | _cell_at(cells, i)) & 0xFFFFFFFFFFFFFFFF
    expected = f"{reg:x}"
    if node.unitname != expected:
        check.fail(
            dti, node, f'simple-bus unit address format error, expected "{expected}"'
        )


def i2c_bus_bridge(check: Check, dti: DtInfo, node: Node) -> None:
    base = node.basename
    if base in ("i2c-bus", "i2c-arb"):
        node.bus = I2C_BUS
    elif base == "i2c":
        n = node.basenamelen
        if any(child.name[:n] == "i2c-bus" for child in node.live_children()):
            return
        node.bus = I2C_BUS
    else:
        return

    if not any(True for _ in node.live_children()):
        return
    if node_addr_cells(node) != 1:
        check.fail(dti, node, "incorrect #address-cells for I2C bus")
    if node_size_cells(node) != 0:
        check.fail(dti, node, "incorrect #size-cells for I2C bus")


def i2c_bus_reg(check: Check, dti: DtInfo, node: Node) -> None:
    if node.parent is None or node.parent.bus is not I2C_BUS:
        return
    prop = node.get_property("reg")
    if prop is None or not len(prop.val):
        check.fail(dti, node, "missing or empty reg property")
        return

    cells = _cells(prop)
    reg = _cell_at(cells, 0) & ~I2C_OWN_SLAVE_ADDRESS
    expected = f"{reg:x}"
    if node.unitname != expected:
        check.fail(
            dti, node, f'I2C bus unit address format error, expected "{expected}"'
        )

    for value in cells:
        reg = value & ~I2C_OWN_SLAVE_ADDRESS
        if reg & I2C_TEN_BIT_ADDRESS:
            if (reg & ~I2C_TEN_BIT_ADDRESS) > 0x3FF:
                check.fail(
                    dti,
                    node,
                    f'I2C address must be less than 10-bits, got "0x{reg:x}"',
                    prop,
                )
        elif reg > 0x7F:
            check.fail(
                dti,
                node,
                f'I2C address must be less than 7-bits, got "0x{reg:x}". '
                "Set I2C_TEN_BIT_ADDRESS for 10 bit addresses or fix the property",
                prop,
            )


def spi_bus_bridge(check: Check, dti: DtInfo, node: Node) -> None:
    spi_addr_cells = 1
    if node.basename == "spi":
        node.bus = SPI_BUS
    else:
        # Try to detect SPI buses without a proper node name.
        if node_addr_cells(node) != 1 or node_size_cells(node) != 0:
            return
        if any(
            prop.name.startswith("spi-")
            for child in node.live_children()
            for prop in child.live_properties()
        ):
            node.bus = SPI_BUS
        if node.bus is SPI_BUS and node.get_property("reg") is not None:
            check.fail(dti, node, "node name for SPI buses should be 'spi'")

    if node.bus is not SPI_BUS or not any(True for _ in node.live_children()):
        return
    if node.get_property("spi-slave") is not None:
        spi_addr_cells = 0
    if node_addr_cells(node) != spi_addr_cells:
        check.fail(dti, node, "incorrect #address-cells for SPI bus")
    if node_size_cells(node) != 0:
        check.fail(dti, node, "incorrect #size-cells for SPI bus")


def spi_bus_reg(check: Check, dti: DtInfo, node: Node) -> None:
    if node.parent is None or node.parent.bus is not SPI_BUS:
        return
    if node.parent.get_property("spi-slave") is not None:
        return
    prop = node.get_property("reg")
    if prop is None or not len(prop.val):
        check.fail(dti, node, "missing or empty reg property")
        return
    expected = f"{_cell_at(_cells(prop), 0):x}"
    if node.unitname != expected:
        check.fail(
            dti, node, f'SPI bus unit address format error, expected "{expected}"'
        )


def unit_address_format(check: Check, dti: DtInfo, node: Node) -> None:
    if node.parent is not None and node.parent.bus is not None:
        return
    unitname = node.unitname
    if not unitname:
        return
    if unitname.startswith("0x"):
        check.fail(dti, node, 'unit name should not have leading "0x"')
        unitname = unitname[2:]
    if unitname[:1] == "0" and unitname[1:2] and unitname[1] in string.hexdigits:
        check.fail(dti, node, "unit name should not have leading 0s")


def avoid_default_addr_size(check: Check, dti: DtInfo, node: Node) -> None:
    if node.parent is None:
        return
    if node.get_property("reg") is None and node.get_property("ranges") is None:
        return
    if node.parent.addr_cells == -1:
        check.fail(dti, node, "Relying on default #address-cells value")
    if node.parent.size_cells == -1:
        check.fail(dti, node, "Relying on default #size-cells value")


def avoid_unnecessary_addr_size(check: Check, dti: DtInfo, node: Node) -> None:
    if node.parent is None or node.addr_cells < 0 or node.size_cells < 0:
        return
    children = list(node.live_children())
    if (
        node.get_property("ranges") is not None
        or node.get_property("dma-ranges") is not None
        or not children
    ):
        return
    if not any(child.get_property("reg") is not None for child in children):
        check.fail(
            dti,
            node,
            'unnecessary #address-cells/#size-cells without "ranges", '
            '"dma-ranges" or child "reg" property',
        )


def _node_is_disabled(node: Node) -> bool:
    prop = node.get_property("status")
    return prop is not None and prop.text == "disabled"


def _unique_unit_address_common(
    check: Check, dti: DtInfo, node: Node, disable_check: bool
) -> None:
    if node.addr_cells < 0 or node.size_cells < 0:
        return
    children = list(node.live_children())
    for index, childa in enumerate(children):
        addr_a = childa.unitname
        if not addr_a:
            continue
        if disable_check and _node_is_disabled(childa):
            continue
        for childb in children[:index]:
            if disable_check and _node_is_disabled(childb):
                continue
            if childb.unitname == addr_a:
                check.fail(
                    dti,
                    childb,
                    f"duplicate unit-address (also used in node {childa.fullpath})",
                )


def unique_unit_address(check: Check, dti: DtInfo, node: Node) -> None:
    _unique_unit_address_common(check, dti, node, False)


def unique_unit_address_if_enabled(check: Check, dti: DtInfo, node: Node) -> None:
    _unique_unit_address_common(check, dti, node, True)


def obsolete_chosen_interrupt_controller(
    check: Check, dti: DtInfo, node: Node
) -> None:
    if node is not dti.dt:
        return
    chosen = dti.dt.get_node_by_path("/chosen")
    if chosen is None:
        return
    prop = chosen.get_property("interrupt-controller")
    if prop is not None:
        check.fail(
            dti, node, '/chosen has obsolete "interrupt-controller" property', prop
        )


def chosen_node_is_root(check: Check, dti: DtInfo, node: Node) -> None:
    if node.name != "chosen":
        return
    if node.parent is not dti.dt:
        check.fail(dti, node, "chosen node must be at root node")


def chosen_node_bootargs(check: Check, dti: DtInfo, node: Node) -> None:
    if node.name != "chosen":
        return
    prop = node.get_property("bootargs")
    if prop is None:
        return
    _check_is_string(check, dti, node, prop.name)


def chosen_node_stdout_path(check: Check, dti: DtInfo, node: Node) -> None:
    if node.name != "chosen":
        return
    prop = node.get_property("stdout-path")
    if prop is None:
        prop = node.get_property("linux,stdout-path")
        if prop is None:
            return
        check.fail(dti, node, "Use 'stdout-path' instead", prop)
    _check_is_string(check, dti, node, prop.name)