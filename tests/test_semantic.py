from devtree import semantic
from devtree.checkbase import Check, CheckStatus
from devtree.data import Data
from devtree.tree import DtInfo, Node, Property


def cells(*values):
    d = Data()
    for v in values:
        d.append_cell(v)
    return d


def text(s):
    return Data.copy_mem(s.encode() + b"\0")


def run(fn, root, data=None):
    check = Check(fn.__name__, fn, data=data, warn=True)
    dti = DtInfo(root)
    for node in list(root.walk()):
        semantic.fixup_addr_size_cells(check, dti, node)
    for node in list(root.walk()):
        fn(check, dti, node)
    return check


def test_fixup_addr_size_cells_reads_values():
    root = Node()
    root.add_property(Property("#address-cells", cells(1)))
    run(lambda c, d, n: None, root)
    assert root.addr_cells == 1
    assert root.size_cells == -1


def test_reg_format_bad_length():
    root = Node()
    child = root.add_child(Node("dev@0"))
    child.add_property(Property("reg", cells(0)))
    check = run(semantic.reg_format, root)
    assert check.status is CheckStatus.FAILED
    assert "invalid length" in check.messages[0]


def test_reg_format_ok():
    root = Node()
    root.add_child(Node("dev@0")).add_property(Property("reg", cells(0, 0, 16)))
    assert run(semantic.reg_format, root).status is CheckStatus.UNCHECKED


def test_root_reg_rejected():
    root = Node()
    root.add_property(Property("reg", cells(0)))
    check = run(semantic.reg_format, root)
    assert 'Root node has a "reg" property' in check.messages[0]


def test_ranges_empty_mismatch():
    root = Node()
    child = root.add_child(Node("bus"))
    child.add_property(Property("#address-cells", cells(1)))
    child.add_property(Property("ranges", Data()))
    check = run(semantic.ranges_format, root, "ranges")
    assert "#address-cells (1)" in check.messages[0]


def test_pci_bridge_and_device_reg():
    root = Node()
    pci = root.add_child(Node("pci@0"))
    pci.add_property(Property("device_type", text("pci")))
    pci.add_property(Property("#address-cells", cells(3)))
    pci.add_property(Property("#size-cells", cells(2)))
    pci.add_property(Property("ranges", Data()))
    dev = pci.add_child(Node("eth@1,2"))
    dev.add_property(Property("reg", cells((1 << 11) | (2 << 8), 0, 0, 0, 0)))
    check = run(semantic.pci_bridge, root)
    assert pci.bus is semantic.PCI_BUS
    assert check.status is CheckStatus.UNCHECKED
    check2 = Check("r", warn=True)
    semantic.pci_device_reg(check2, DtInfo(root), dev)
    assert check2.status is CheckStatus.UNCHECKED
    dev.name = "eth@5"
    semantic.pci_device_reg(check2, DtInfo(root), dev)
    assert 'expected "1,2"' in check2.messages[0]


def test_node_is_compatible():
    node = Node("x")
    node.add_property(Property("compatible", Data.copy_mem(b"a\0simple-bus\0")))
    assert semantic.node_is_compatible(node, "simple-bus")
    assert not semantic.node_is_compatible(node, "simple")


def test_simple_bus_reg_expected_address():
    root = Node()
    bus = root.add_child(Node("soc"))
    bus.add_property(Property("compatible", text("simple-bus")))
    bus.add_property(Property("#address-cells", cells(1)))
    bus.add_property(Property("#size-cells", cells(1)))
    dev = bus.add_child(Node("uart@1000"))
    dev.add_property(Property("reg", cells(0x2000, 4)))
    run(semantic.simple_bus_bridge, root)
    check = run(semantic.simple_bus_reg, root)
    assert 'expected "2000"' in check.messages[0]


def test_i2c_bus_reg_seven_bit_limit():
    root = Node()
    bus = root.add_child(Node("i2c@0"))
    bus.add_property(Property("#address-cells", cells(1)))
    bus.add_property(Property("#size-cells", cells(0)))
    dev = bus.add_child(Node("chip@80"))
    dev.add_property(Property("reg", cells(0x80)))
    run(semantic.i2c_bus_bridge, root)
    assert bus.bus is semantic.I2C_BUS
    check = run(semantic.i2c_bus_reg, root)
    assert any("less than 7-bits" in m for m in check.messages)


def test_spi_bus_detected_by_child_property():
    root = Node()
    bus = root.add_child(Node("ctrl@0"))
    bus.add_property(Property("reg", cells(0, 0, 0)))
    bus.add_property(Property("#address-cells", cells(1)))
    bus.add_property(Property("#size-cells", cells(0)))
    bus.add_child(Node("flash@0")).add_property(Property("spi-max-frequency", cells(1)))
    check = run(semantic.spi_bus_bridge, root)
    assert bus.bus is semantic.SPI_BUS
    assert "should be 'spi'" in check.messages[0]


def test_unit_address_format_leading_zero_and_0x():
    root = Node()
    root.add_child(Node("a@0x01"))
    check = run(semantic.unit_address_format, root)
    assert len(check.messages) == 2


def test_unique_unit_address_if_enabled_skips_disabled():
    root = Node()
    root.add_property(Property("#address-cells", cells(1)))
    root.add_property(Property("#size-cells", cells(1)))
    root.add_child(Node("a@1"))
    b = root.add_child(Node("b@1"))
    assert run(semantic.unique_unit_address, root).status is CheckStatus.FAILED
    b.add_property(Property("status", text("disabled")))
    check = run(semantic.unique_unit_address_if_enabled, root)
    assert check.status is CheckStatus.UNCHECKED


def test_chosen_checks():
    root = Node()
    other = root.add_child(Node("x"))
    chosen = other.add_child(Node("chosen"))
    chosen.add_property(Property("linux,stdout-path", text("/x")))
    assert "must be at root" in run(semantic.chosen_node_is_root, root).messages[0]
    check = run(semantic.chosen_node_stdout_path, root)
    assert "Use 'stdout-path' instead" in check.messages[0]