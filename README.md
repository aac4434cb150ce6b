# devtree

An in-memory model of a device tree, with a configurable set of checks that
find structural, semantic and style problems in a tree and fix up its
phandle and path references.

## Modules

- `devtree.data`: `Data` is the byte value of a property. It carries an
  ordered list of `Marker`s. Each marker has an offset, a `MarkerType` and
  an optional reference string. The types are labels, phandle and path
  references, and type hints. `Data` can append big-endian integers of 8,
  16, 32 or 64 bits (`append_integer`, `append_byte`, `append_cell`,
  `append_addr`). It can also append memory reservation entries
  (`append_re`), zeroes and alignment padding. Other methods merge two
  values (`merge`), insert bytes at a marker (`insert_at_marker`), read a
  binary stream (`Data.from_file`) and test for a single NUL-terminated
  string (`is_one_string`). The `append_*` methods change the value in
  place and return it, so calls can be chained.
- `devtree.tree`: `Node`, `Property`, `Bus` and `DtInfo`.
  - A `Node` finds nodes by path, label, phandle or reference
    (`get_node_by_path`, `get_node_by_label`, `get_node_by_phandle`,
    `get_node_by_ref`).
  - It also finds a property or value marker that carries a label
    (`get_property_by_label`, `get_marker_label`).
  - `walk` visits the tree depth first.
  - `get_node_phandle` assigns an unused phandle when a node has none.
  - `Property.cell` and `Property.cell_n` read 32-bit cells.
  - `node_addr_cells` and `node_size_cells` apply the defaults of 2 and 1.
  - `phandle_is_valid` rejects 0 and `0xffffffff`.
- `devtree.checkbase`: `Check` and `CheckStatus`. A check runs its
  prerequisites first. It then calls its function on every node of the
  tree and records its status. Each failure is written to standard error
  and kept in `Check.messages`.
- `devtree.structural`, `devtree.semantic`, `devtree.providers`: the check
  functions. They cover:
  - node and property naming rules, duplicate names and labels;
  - explicit phandles and the fix-up of phandle and path references;
  - removal of unused nodes marked for omission, and alias paths;
  - `reg`, `ranges` and `dma-ranges` formats;
  - PCI, simple-bus, I2C and SPI buses, and unit address formats;
  - `/chosen`;
  - phandle-plus-arguments properties such as `clocks`, `dmas` and GPIOs;
  - interrupts and `interrupt-map`;
  - graph ports and endpoints.
- `devtree.checker`: `Checker` holds the full table of checks in their
  fixed running order. `CheckError` is the exception it raises.

## Installation

```
pip install .
```

## Usage

```python
from devtree.data import Data
from devtree.tree import DtInfo, Node, Property
from devtree.checker import Checker, CheckError

root = Node("")
root.add_property(Property("#address-cells", Data().append_cell(1)))
root.add_property(Property("#size-cells", Data().append_cell(1)))

memory = root.add_child(Node("memory@80000000"))
memory.add_property(Property("device_type", Data().append_data(b"memory\0")))
memory.add_property(
    Property("reg", Data().append_cell(0x80000000).append_cell(0x10000000))
)

dti = DtInfo(dt=root, outname="out.dtb")

checker = Checker()
checker.parse_option(True, False, "node_name_chars_strict")  # turn on a warning
checker.parse_option(True, False, "no-unit_address_vs_reg")  # turn one off

try:
    checker.process(dti, force=False)
except CheckError as exc:
    print("tree has errors:", exc)

print(checker.get("reg_format").status)
```

Each failure is reported on standard error. The message gives the first
source position of the property or node, or else the output name
(`<stdout>` when `outname` is `"-"`). It then gives the level (`ERROR` or
`Warning`), the name of the check, the node or property path, and the
problem.

`DtInfo.quiet` silences output:

- 1 silences warnings;
- 2 also silences errors;
- 3 also silences the notice that output was forced.

`DtInfo.plugin` relaxes the checks that would otherwise fail on unresolved
external references. `DtInfo.generate_symbols` keeps labelled nodes from
being removed as unused.

`Checker.process` runs every check that is enabled as a warning or an
error. Once one check has produced an error, the checks after it are not
run. With `force=False` an error raises `CheckError`. With `force=True`
the method returns `True` instead, and notes on standard error that output
was forced.

`Checker.parse_option(warn, error, name)` enables a check by name, or
disables it when the name is prefixed with `no-` or `no_`. Enabling a check
also enables its prerequisites. Disabling a check also disables every check
that depends on it. An unknown name raises `CheckError`.

## What it does not do

The package works only on a tree that has been built in memory from `Node`
and `Property` objects. It does not parse device tree source text. It does
not read or write flattened binary blobs and has no command-line tool.
Trees have to be built, and results written out, by the calling code.

## Running the tests

```
pip install .[test]
pytest
```