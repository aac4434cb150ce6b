"""Structural checks and reference fixups over a device tree."""

from __future__ import annotations

import struct
import string

from .checkbase import Check
from .data import Marker, MarkerType
from .tree import DtInfo, Node, Property, phandle_is_valid

_CELL = 4

LOWERCASE = string.ascii_lowercase
UPPERCASE = string.ascii_uppercase
DIGITS = string.digits
NODECHARS = LOWERCASE + UPPERCASE + DIGITS + ",._+-@"
PROPCHARS = LOWERCASE + UPPERCASE + DIGITS + ",._+*#?-"
PROPNODECHARSSTRICT = LOWERCASE + UPPERCASE + DIGITS + ",-"


def _span(text: str, allowed: str) -> int:
    """Length of the leading run of ``text`` made only of ``allowed``."""
    for i, ch in enumerate(text):
        if ch not in allowed:
            return i
    return len(text)


def _check_string(check: Check, dti: DtInfo, node: Node, propname: str) -> None:
    prop = node.get_property(propname)
    if prop is None:
        return
    if not prop.val.is_one_string():
        check.fail(dti, node, "property is not a string", prop)


def _check_string_list(check: Check, dti: DtInfo, node: Node, propname: str) -> None:
    prop = node.get_property(propname)
    if prop is None:
        return
    if prop.val.val and prop.val.val[-1] != 0:
        check.fail(dti, node, "property is not a string list", prop)


def always_fail(check: Check, dti: DtInfo, node: Node) -> None:
    check.fail(dti, node, "always_fail check")


def is_string(check: Check, dti: DtInfo, node: Node) -> None:
    """Fail if the property named by ``check.data`` is not a single string."""
    _check_string(check, dti, node, check.data)


def is_string_list(check: Check, dti: DtInfo, node: Node) -> None:
    """Fail if the property named by ``check.data`` is not a string list."""
    _check_string_list(check, dti, node, check.data)


def is_cell(check: Check, dti: DtInfo, node: Node) -> None:
    """Fail if the property named by ``check.data`` is not a single cell."""
    prop = node.get_property(check.data)
    if prop is None:
        return
    if len(prop.val) != _CELL:
        check.fail(dti, node, "property is not a single cell", prop)


def duplicate_node_names(check: Check, dti: DtInfo, node: Node) -> None:
    children = list(node.live_children())
    for i, child in enumerate(children):
        for other in children[i + 1:]:
            if child.name == other.name:
                check.fail(dti, other, "Duplicate node name")


def duplicate_property_names(check: Check, dti: DtInfo, node: Node) -> None:
    props = list(node.live_properties())
    for i, prop in enumerate(props):
        for other in props[i + 1:]:
            if prop.name == other.name:
                check.fail(dti, node, "Duplicate property name", prop)


def node_name_chars(check: Check, dti: DtInfo, node: Node) -> None:
    n = _span(node.name, check.data)
    if n < len(node.name):
        check.fail(dti, node, f"Bad character '{node.name[n]}' in node name")


def node_name_chars_strict(check: Check, dti: DtInfo, node: Node) -> None:
    n = _span(node.name, check.data)
    if n < node.basenamelen:
        check.fail(
            dti, node, f"Character '{node.name[n]}' not recommended in node name"
        )


def node_name_format(check: Check, dti: DtInfo, node: Node) -> None:
    if "@" in node.unitname:
        check.fail(dti, node, "multiple '@' characters in node name")


def node_name_vs_property_name(check: Check, dti: DtInfo, node: Node) -> None:
    if node.parent is None:
        return
    if node.parent.get_property(node.name) is not None:
        check.fail(dti, node, "node name and property name conflict")


def unit_address_vs_reg(check: Check, dti: DtInfo, node: Node) -> None:
    if node.get_subnode("__overlay__") is not None:
        # Overlay fragments are a special case.
        return

    prop = node.get_property("reg")
    if prop is None:
        prop = node.get_property("ranges")
        if prop is not None and not len(prop.val):
            prop = None

    if prop is not None:
        if not node.unitname:
            check.fail(
                dti, node, "node has a reg or ranges property, but no unit name"
            )
    elif node.unitname:
        check.fail(dti, node, "node has a unit name, but no reg or ranges property")


def property_name_chars(check: Check, dti: DtInfo, node: Node) -> None:
    for prop in node.live_properties():
        n = _span(prop.name, check.data)
        if n < len(prop.name):
            check.fail(
                dti, node, f"Bad character '{prop.name[n]}' in property name", prop
            )


def property_name_chars_strict(check: Check, dti: DtInfo, node: Node) -> None:
    for prop in node.live_properties():
        name = prop.name
        n = _span(name, check.data)
        if n == len(name):
            continue
        if name == "device_type":
            continue
        # '#' is only allowed at the start of a name, after any vendor prefix.
        if name[n] == "#" and (n == 0 or name[n - 1] == ","):
            name = name[n + 1:]
            n = _span(name, check.data)
        if n < len(name):
            check.fail(
                dti,
                node,
                f"Character '{name[n]}' not recommended in property name",
                prop,
            )


def _describe_label(node: Node, prop: Property | None, mark: Marker | None) -> str:
    text = "value of " if mark is not None else ""
    if prop is not None:
        text += f"'{prop.name}' in "
    return text + node.fullpath


def _check_duplicate_label(
    check: Check,
    dti: DtInfo,
    label: str,
    node: Node,
    prop: Property | None,
    mark: Marker | None,
) -> None:
    dt = dti.dt
    othernode = dt.get_node_by_label(label)
    otherprop = None
    othermark = None

    if othernode is None:
        found = dt.get_property_by_label(label)
        if found is not None:
            othernode, otherprop = found
    if othernode is None:
        found_mark = dt.get_marker_label(label)
        if found_mark is not None:
            othernode, otherprop, othermark = found_mark
    if othernode is None:
        return

    if othernode is not node or otherprop is not prop or othermark is not mark:
        check.fail(
            dti,
            node,
            f"Duplicate label '{label}' on {_describe_label(node, prop, mark)}"
            f" and {_describe_label(othernode, otherprop, othermark)}",
        )


def duplicate_label(check: Check, dti: DtInfo, node: Node) -> None:
    for label in node.labels:
        _check_duplicate_label(check, dti, label, node, None, None)

    for prop in node.live_properties():
        for label in prop.labels:
            _check_duplicate_label(check, dti, label, node, prop, None)
        for mark in prop.val.markers_of_type(MarkerType.LABEL):
            _check_duplicate_label(check, dti, mark.ref, node, prop, mark)


def _check_phandle_prop(check: Check, dti: DtInfo, node: Node, propname: str) -> int:
    prop = node.get_property(propname)
    if prop is None:
        return 0

    if len(prop.val) != _CELL:
        check.fail(
            dti, node, f"bad length ({len(prop.val)}) {prop.name} property", prop
        )
        return 0

    for mark in prop.val.markers_of_type(MarkerType.REF_PHANDLE):
        assert mark.offset == 0
        if node is not dti.dt.get_node_by_ref(mark.ref):
            # Setting this node's phandle to another node's is nonsensical.
            check.fail(dti, node, f"{prop.name} is a reference to another node")
        # A self-reference asks for a phandle to be allocated later.
        return 0

    phandle = prop.cell()
    if not phandle_is_valid(phandle):
        check.fail(
            dti, node, f"bad value (0x{phandle:x}) in {prop.name} property", prop
        )
        return 0
    return phandle


def explicit_phandles(check: Check, dti: DtInfo, node: Node) -> None:
    assert not node.phandle, "phandles must not be assigned before this check"

    phandle = _check_phandle_prop(check, dti, node, "phandle")
    linux_phandle = _check_phandle_prop(check, dti, node, "linux,phandle")

    if not phandle and not linux_phandle:
        return

    if linux_phandle and phandle and phandle != linux_phandle:
        check.fail(dti, node, "mismatching 'phandle' and 'linux,phandle' properties")

    if linux_phandle and not phandle:
        phandle = linux_phandle

    other = dti.dt.get_node_by_phandle(phandle)
    if other is not None and other is not node:
        check.fail(
            dti,
            node,
            f"duplicated phandle 0x{phandle:x} (seen before at {other.fullpath})",
        )
        return

    node.phandle = phandle


def name_properties(check: Check, dti: DtInfo, node: Node) -> None:
    """Drop a redundant "name" property, or fail if it disagrees with the node."""
    prop = next((p for p in node.properties if p.name == "name"), None)
    if prop is None:
        return

    base = node.name[: node.basenamelen].encode("utf-8")
    value = bytes(prop.val.val)
    if len(value) != len(base) + 1 or value[: len(base)] != base:
        check.fail(
            dti,
            node,
            f'"name" property is incorrect ("{prop.text}" instead of base node name)',
        )
    else:
        node.properties.remove(prop)


def _store_cell(prop: Property, offset: int, value: int) -> None:
    prop.val.val[offset:offset + _CELL] = struct.pack(">I", value & 0xFFFFFFFF)


def fixup_phandle_references(check: Check, dti: DtInfo, node: Node) -> None:
    dt = dti.dt
    for prop in node.live_properties():
        for mark in prop.val.markers_of_type(MarkerType.REF_PHANDLE):
            assert mark.offset + _CELL <= len(prop.val)
            refnode = dt.get_node_by_ref(mark.ref)
            if refnode is None:
                if not dti.plugin:
                    check.fail(
                        dti,
                        node,
                        f'Reference to non-existent node or label "{mark.ref}"',
                    )
                else:
                    # Leave the entry marked as unresolved.
                    _store_cell(prop, mark.offset, 0xFFFFFFFF)
                continue

            _store_cell(prop, mark.offset, dt.get_node_phandle(refnode))
            refnode.is_referenced = True


def fixup_path_references(check: Check, dti: DtInfo, node: Node) -> None:
    dt = dti.dt
    for prop in node.live_properties():
        for mark in list(prop.val.markers_of_type(MarkerType.REF_PATH)):
            assert mark.offset <= len(prop.val)
            refnode = dt.get_node_by_ref(mark.ref)
            if refnode is None:
                check.fail(
                    dti, node, f'Reference to non-existent node or label "{mark.ref}"'
                )
                continue
            prop.val.insert_at_marker(mark, refnode.fullpath.encode("utf-8") + b"\0")
            refnode.is_referenced = True


def fixup_omit_unused_nodes(check: Check, dti: DtInfo, node: Node) -> None:
    if dti.generate_symbols and node.labels:
        return
    if node.omit_if_unused and not node.is_referenced:
        node.delete()


def names_is_string_list(check: Check, dti: DtInfo, node: Node) -> None:
    for prop in list(node.live_properties()):
        if prop.name.endswith("-names"):
            _check_string_list(check, dti, node, prop.name)


def alias_paths(check: Check, dti: DtInfo, node: Node) -> None:
    if node.name != "aliases":
        return

    allowed = LOWERCASE + DIGITS + "-"
    for prop in node.live_properties():
        if prop.name in ("phandle", "linux,phandle"):
            continue

        if not prop.val.val or dti.dt.get_node_by_path(prop.text) is None:
            check.fail(
                dti,
                node,
                f"aliases property is not a valid node ({prop.text})",
                prop,
            )
            continue

        if _span(prop.name, allowed) != len(prop.name):
            check.fail(
                dti, node, "aliases property name must include only lowercase and '-'"
            )