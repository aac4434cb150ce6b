"""The table of tree checks and the logic to configure and run them."""

from __future__ import annotations

import sys
from typing import Iterator

from . import providers, semantic, structural
from .checkbase import Check, CheckFn
from .providers import Provider
from .tree import DtInfo

_PHANDLE_PROVIDERS = (
    ("clocks", "clocks", "#clock-cells", False),
    ("cooling_device", "cooling-device", "#cooling-cells", False),
    ("dmas", "dmas", "#dma-cells", False),
    ("hwlocks", "hwlocks", "#hwlock-cells", False),
    ("interrupts_extended", "interrupts-extended", "#interrupt-cells", False),
    ("io_channels", "io-channels", "#io-channel-cells", False),
    ("iommus", "iommus", "#iommu-cells", False),
    ("mboxes", "mboxes", "#mbox-cells", False),
    ("msi_parent", "msi-parent", "#msi-cells", True),
    ("mux_controls", "mux-controls", "#mux-control-cells", False),
    ("phys", "phys", "#phy-cells", False),
    ("power_domains", "power-domains", "#power-domain-cells", False),
    ("pwms", "pwms", "#pwm-cells", False),
    ("resets", "resets", "#reset-cells", False),
    ("sound_dai", "sound-dai", "#sound-dai-cells", False),
    ("thermal_sensors", "thermal-sensors", "#thermal-sensor-cells", False),
)


class CheckError(Exception):
    """Raised for an unknown check name or a tree that fails its checks."""


class Checker:
    """A full set of checks, in their fixed running order."""

    def __init__(self) -> None:
        self._checks: dict[str, Check] = {}
        self._build()
        self.table: list[Check] = [self._checks[name] for name in self._order()]

    def __iter__(self) -> Iterator[Check]:
        return iter(self.table)

    def _add(
        self,
        name: str,
        fn: CheckFn | None,
        data: object = None,
        *prereqs: str,
        warn: bool = False,
        error: bool = False,
    ) -> None:
        self._checks[name] = Check(
            name=name,
            fn=fn,
            data=data,
            warn=warn,
            error=error,
            prereqs=[self._checks[p] for p in prereqs],
        )

    def _warning(self, name: str, fn: CheckFn, data: object = None, *prereqs: str) -> None:
        self._add(name, fn, data, *prereqs, warn=True)

    def _error(self, name: str, fn: CheckFn, data: object = None, *prereqs: str) -> None:
        self._add(name, fn, data, *prereqs, error=True)

    def _build(self) -> None:
        s, m, p = structural, semantic, providers

        self._add("always_fail", s.always_fail)
        self._error("duplicate_node_names", s.duplicate_node_names)
        self._error("duplicate_property_names", s.duplicate_property_names)
        self._error("node_name_chars", s.node_name_chars, s.NODECHARS)
        self._add("node_name_chars_strict", s.node_name_chars_strict, s.PROPNODECHARSSTRICT)
        self._error("node_name_format", s.node_name_format, None, "node_name_chars")
        self._warning(
            "node_name_vs_property_name", s.node_name_vs_property_name, None,
            "node_name_chars",
        )
        self._warning("unit_address_vs_reg", s.unit_address_vs_reg)
        self._error("property_name_chars", s.property_name_chars, s.PROPCHARS)
        self._add(
            "property_name_chars_strict", s.property_name_chars_strict,
            s.PROPNODECHARSSTRICT,
        )
        self._error("duplicate_label", s.duplicate_label)
        self._error("explicit_phandles", s.explicit_phandles)
        self._error("name_is_string", s.is_string, "name")
        self._error("name_properties", s.name_properties, None, "name_is_string")
        self._error(
            "phandle_references", s.fixup_phandle_references, None,
            "duplicate_node_names", "explicit_phandles",
        )
        self._error(
            "path_references", s.fixup_path_references, None, "duplicate_node_names"
        )
        self._error(
            "omit_unused_nodes", s.fixup_omit_unused_nodes, None,
            "phandle_references", "path_references",
        )

        self._warning("address_cells_is_cell", s.is_cell, "#address-cells")
        self._warning("size_cells_is_cell", s.is_cell, "#size-cells")
        self._warning("device_type_is_string", s.is_string, "device_type")
        self._warning("model_is_string", s.is_string, "model")
        self._warning("status_is_string", s.is_string, "status")
        self._warning("label_is_string", s.is_string, "label")
        self._warning("compatible_is_string_list", s.is_string_list, "compatible")
        self._warning("names_is_string_list", s.names_is_string_list)
        self._warning("alias_paths", s.alias_paths)

        self._warning(
            "addr_size_cells", m.fixup_addr_size_cells, None,
            "address_cells_is_cell", "size_cells_is_cell",
        )
        self._warning("reg_format", m.reg_format, None, "addr_size_cells")
        self._warning("ranges_format", m.ranges_format, "ranges", "addr_size_cells")
        self._warning(
            "dma_ranges_format", m.ranges_format, "dma-ranges", "addr_size_cells"
        )
        self._warning(
            "pci_bridge", m.pci_bridge, None, "device_type_is_string", "addr_size_cells"
        )
        self._warning(
            "pci_device_bus_num", m.pci_device_bus_num, None, "reg_format", "pci_bridge"
        )
        self._warning(
            "pci_device_reg", m.pci_device_reg, None, "reg_format", "pci_bridge"
        )
        self._warning(
            "simple_bus_bridge", m.simple_bus_bridge, None,
            "addr_size_cells", "compatible_is_string_list",
        )
        self._warning(
            "simple_bus_reg", m.simple_bus_reg, None, "reg_format", "simple_bus_bridge"
        )
        self._warning("i2c_bus_bridge", m.i2c_bus_bridge, None, "addr_size_cells")
        self._warning(
            "i2c_bus_reg", m.i2c_bus_reg, None, "reg_format", "i2c_bus_bridge"
        )
        self._warning("spi_bus_bridge", m.spi_bus_bridge, None, "addr_size_cells")
        self._warning(
            "spi_bus_reg", m.spi_bus_reg, None, "reg_format", "spi_bus_bridge"
        )
        self._warning(
            "unit_address_format", m.unit_address_format, None,
            "node_name_format", "pci_bridge", "simple_bus_bridge",
        )
        self._warning(
            "avoid_default_addr_size", m.avoid_default_addr_size, None,
            "addr_size_cells",
        )
        self._warning(
            "avoid_unnecessary_addr_size", m.avoid_unnecessary_addr_size, None,
            "avoid_default_addr_size",
        )
        self._warning(
            "unique_unit_address", m.unique_unit_address, None,
            "avoid_default_addr_size",
        )
        self._add(
            "unique_unit_address_if_enabled", m.unique_unit_address_if_enabled, None,
            "avoid_default_addr_size",
        )
        self._warning(
            "obsolete_chosen_interrupt_controller",
            m.obsolete_chosen_interrupt_controller,
        )
        self._warning("chosen_node_is_root", m.chosen_node_is_root)
        self._warning("chosen_node_bootargs", m.chosen_node_bootargs)
        self._warning("chosen_node_stdout_path", m.chosen_node_stdout_path)

        for name, propname, cells_name, optional in _PHANDLE_PROVIDERS:
            self._warning(f"{name}_is_cell", s.is_cell, cells_name)
            self._warning(
                f"{name}_property",
                p.provider_cells_property,
                Provider(propname, cells_name, optional),
                f"{name}_is_cell",
                "phandle_references",
            )

        self._warning("gpios_property", p.gpios_property, None, "phandle_references")
        self._add("deprecated_gpio_property", p.deprecated_gpio_property)
        self._warning(
            "interrupt_provider", p.interrupt_provider, None,
            "interrupts_extended_is_cell",
        )
        self._warning(
            "interrupt_map", p.interrupt_map, None,
            "phandle_references", "addr_size_cells", "interrupt_provider",
        )
        # This check carries phandle_references as data, not as a prerequisite.
        self._warning(
            "interrupts_property", p.interrupts_property,
            self._checks["phandle_references"],
        )
        self._warning("graph_nodes", p.graph_nodes)
        self._warning("graph_port", p.graph_port, None, "graph_nodes")
        self._warning("graph_endpoint", p.graph_endpoint, None, "graph_nodes")
        self._warning(
            "graph_child_address", p.graph_child_address, None,
            "graph_nodes", "graph_port", "graph_endpoint",
        )

    @staticmethod
    def _order() -> list[str]:
        order = [
            "duplicate_node_names", "duplicate_property_names",
            "node_name_chars", "node_name_format", "property_name_chars",
            "name_is_string", "name_properties", "node_name_vs_property_name",
            "duplicate_label",
            "explicit_phandles",
            "phandle_references", "path_references",
            "omit_unused_nodes",
            "address_cells_is_cell", "size_cells_is_cell",
            "device_type_is_string", "model_is_string", "status_is_string",
            "label_is_string",
            "compatible_is_string_list", "names_is_string_list",
            "property_name_chars_strict",
            "node_name_chars_strict",
            "addr_size_cells", "reg_format", "ranges_format", "dma_ranges_format",
            "unit_address_vs_reg",
            "unit_address_format",
            "pci_bridge", "pci_device_reg", "pci_device_bus_num",
            "simple_bus_bridge", "simple_bus_reg",
            "i2c_bus_bridge", "i2c_bus_reg",
            "spi_bus_bridge", "spi_bus_reg",
            "avoid_default_addr_size",
            "avoid_unnecessary_addr_size",
            "unique_unit_address",
            "unique_unit_address_if_enabled",
            "obsolete_chosen_interrupt_controller",
            "chosen_node_is_root", "chosen_node_bootargs", "chosen_node_stdout_path",
        ]
        for name, *_ in _PHANDLE_PROVIDERS:
            order += [f"{name}_property", f"{name}_is_cell"]
        order += [
            "deprecated_gpio_property",
            "gpios_property",
            "interrupts_property",
            "interrupt_provider",
            "interrupt_map",
            "alias_paths",
            "graph_nodes", "graph_child_address", "graph_port", "graph_endpoint",
            "always_fail",
        ]
        return order

    def get(self, name: str) -> Check:
        """Return the check called ``name``; KeyError if there is none."""
        return self._checks[name]

    def _enable(self, check: Check, warn: bool, error: bool) -> None:
        # Raising a level raises it for the prerequisites too.
        if (warn and not check.warn) or (error and not check.error):
            for prereq in check.prereqs:
                self._enable(prereq, warn, error)
        check.warn = check.warn or warn
        check.error = check.error or error

    def _disable(self, check: Check, warn: bool, error: bool) -> None:
        # Lowering a level lowers it for the checks that depend on this one.
        if (warn and check.warn) or (error and check.error):
            for other in self.table:
                if any(prereq is check for prereq in other.prereqs):
                    self._disable(other, warn, error)
        check.warn = check.warn and not warn
        check.error = check.error and not error

    def parse_option(self, warn: bool, error: bool, arg: str) -> None:
        """Enable a check by name, or disable it with a "no-"/"no_" prefix."""
        name = arg
        enable = True
        if arg.startswith(("no-", "no_")):
            name = arg[3:]
            enable = False

        check = self._checks.get(name)
        if check is None:
            raise CheckError(f'Unrecognized check name "{name}"')
        if enable:
            self._enable(check, warn, error)
        else:
            self._disable(check, warn, error)

    def process(self, dti: DtInfo, force: bool = False) -> bool:
        """Run every enabled check; True if any error was found.

        Once an error has been found the remaining checks are skipped.
        Without ``force`` an error raises :class:`CheckError`.
        """
        error = False
        for check in self.table:
            if check.warn or check.error:
                error = error or check.run(dti)

        if error:
            if not force:
                raise CheckError(
                    "Input tree has errors, aborting (use -f to force output)"
                )
            if dti.quiet < 3:
                sys.stderr.write("Warning: Input tree has errors, output forced\n")
        return error