from devtree import providers
from devtree.checkbase import Check, CheckStatus
from devtree.data import Data
from devtree.tree import DtInfo, Node, Property


def cells(*values):
    d = Data()
    for v in values:
        d.append_cell(v)
    return d


def run(fn, root, data=None):
    check = Check("c", fn, data=data, warn=True)
    dti = DtInfo(root)
    for node in list(root.walk()):
        node.addr_cells = (
            node.get_property("#address-cells").cell()
            if node.get_property("#address-cells") else -1
        )
        node.size_cells = (
            node.get_property("#size-cells").cell()
            if node.get_property("#size-cells") else -1
        )
    for node in list(root.walk()):
        fn(check, dti, node)
    return check


def clock_tree(ncells, consumer_cells):
    root = Node()
    clk = root.add_child(Node("clk"))
    clk.phandle = 1
    clk.add_property(Property("#clock-cells", cells(ncells)))
    dev = root.add_child(Node("dev"))
    dev.add_property(Property("clocks", cells(*consumer_cells)))
    return root


def test_prop_is_gpio():
    assert providers.prop_is_gpio("reset-gpios")
    assert providers.prop_is_gpio("gpio")
    assert not providers.prop_is_gpio("foo,nr-gpios")
    assert not providers.prop_is_gpio("gpio-controller")


def test_clocks_ok():
    root = clock_tree(1, [1, 5])
    check = run(providers.provider_cells_property, root,
                providers.Provider("clocks", "#clock-cells"))
    assert check.status is CheckStatus.UNCHECKED


def test_clocks_too_small():
    root = clock_tree(2, [1, 5])
    check = run(providers.provider_cells_property, root,
                providers.Provider("clocks", "#clock-cells"))
    assert "too small for cell size 2" in check.messages[0]


def test_clocks_missing_provider():
    root = clock_tree(0, [7])
    check = run(providers.provider_cells_property, root,
                providers.Provider("clocks", "#clock-cells"))
    assert "Could not get phandle node" in check.messages[0]


def test_optional_provider_cells():
    root = Node()
    msi = root.add_child(Node("msi"))
    msi.phandle = 3
    root.add_child(Node("dev")).add_property(Property("msi-parent", cells(3)))
    check = run(providers.provider_cells_property, root,
                providers.Provider("msi-parent", "#msi-cells", True))
    assert check.status is CheckStatus.UNCHECKED


def test_deprecated_gpio():
    root = Node()
    root.add_child(Node("d")).add_property(Property("reset-gpio", cells(0)))
    check = run(providers.deprecated_gpio_property, root)
    assert "deprecated" in check.messages[0]


def test_interrupt_provider_missing_cells():
    root = Node()
    root.add_child(Node("intc")).add_property(Property("interrupt-controller", Data()))
    check = run(providers.interrupt_provider, root)
    assert "Missing '#interrupt-cells'" in check.messages[0]


def test_interrupts_property_multiple():
    root = Node()
    intc = root.add_child(Node("intc"))
    intc.phandle = 2
    intc.add_property(Property("interrupt-controller", Data()))
    intc.add_property(Property("#interrupt-cells", cells(2)))
    dev = root.add_child(Node("dev"))
    dev.add_property(Property("interrupt-parent", cells(2)))
    dev.add_property(Property("interrupts", cells(1, 2)))
    assert run(providers.interrupts_property, root).status is CheckStatus.UNCHECKED
    dev.get_property("interrupts").val.append_cell(3)
    check = run(providers.interrupts_property, root)
    assert "expected multiple of 8" in check.messages[0]


def test_interrupts_missing_parent():
    root = Node()
    root.add_child(Node("dev")).add_property(Property("interrupts", cells(1)))
    check = run(providers.interrupts_property, root)
    assert "Missing interrupt-parent" in check.messages[0]


def test_interrupt_map_ok_and_short():
    root = Node()
    intc = root.add_child(Node("intc"))
    intc.phandle = 4
    intc.add_property(Property("#interrupt-cells", cells(1)))
    nexus = root.add_child(Node("nexus"))
    nexus.add_property(Property("#address-cells", cells(0)))
    nexus.add_property(Property("#interrupt-cells", cells(1)))
    nexus.add_property(Property("interrupt-map", cells(0, 4, 9)))
    assert run(providers.interrupt_map, root).status is CheckStatus.UNCHECKED
    nexus.get_property("interrupt-map").val = cells(0)
    check = run(providers.interrupt_map, root)
    assert "too small" in check.messages[0]


def test_graph_endpoint_bidirectional():
    root = Node()
    dev_a = root.add_child(Node("a"))
    port_a = dev_a.add_child(Node("port"))
    ep_a = port_a.add_child(Node("endpoint"))
    ep_a.phandle = 10
    dev_b = root.add_child(Node("b"))
    port_b = dev_b.add_child(Node("port"))
    ep_b = port_b.add_child(Node("endpoint"))
    ep_b.phandle = 11
    ep_a.add_property(Property("remote-endpoint", cells(11)))
    ep_b.add_property(Property("remote-endpoint", cells(10)))
    run(providers.graph_nodes, root)
    assert port_a.bus is providers.GRAPH_PORT_BUS
    assert run(providers.graph_endpoint, root).status is CheckStatus.UNCHECKED
    ep_b.get_property("remote-endpoint").val = cells(11)
    check = run(providers.graph_endpoint, root)
    assert any("not bidirectional" in m for m in check.messages)


def test_graph_port_name():
    root = Node()
    dev = root.add_child(Node("dev"))
    bad = dev.add_child(Node("link"))
    bad.add_child(Node("endpoint"))
    run(providers.graph_nodes, root)
    check = run(providers.graph_port, root)
    assert "should be 'port'" in check.messages[0]