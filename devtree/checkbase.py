"""Check objects: status tracking, prerequisites and diagnostics."""

from __future__ import annotations

import enum
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .tree import DtInfo, Node, Property

CheckFn = Callable[["Check", DtInfo, Node], None]


class CheckStatus(enum.Enum):
    UNCHECKED = 0
    PREREQ = 1
    PASSED = 2
    FAILED = 3


def is_multiple_of(multiple: int, divisor: int) -> bool:
    """True if ``multiple`` divides evenly by ``divisor``; zero divides only zero."""
    if divisor == 0:
        return multiple == 0
    return multiple % divisor == 0


@dataclass(eq=False)
class Check:
    """A named test run over every node of a tree.

    ``fn`` is called once per node; it reports problems through
    :meth:`fail`.  Diagnostics are written to standard error and kept in
    ``messages``.
    """

    name: str
    fn: Optional[CheckFn] = None
    data: Any = None
    warn: bool = False
    error: bool = False
    prereqs: list[Check] = field(default_factory=list)
    status: CheckStatus = CheckStatus.UNCHECKED
    inprogress: bool = False
    messages: list[str] = field(default_factory=list)

    def _report(
        self,
        dti: DtInfo,
        node: Node | None,
        prop: Property | None,
        message: str,
    ) -> None:
        if not ((self.warn and dti.quiet < 1) or (self.error and dti.quiet < 2)):
            return

        pos = None
        if prop is not None and prop.srcpos:
            pos = prop.srcpos[0]
        elif node is not None and node.srcpos:
            pos = node.srcpos[0]

        if pos is not None:
            where = pos
        elif dti.outname == "-":
            where = "<stdout>"
        else:
            where = dti.outname

        level = "ERROR" if self.error else "Warning"
        parts = [f"{where}: {level} ({self.name}): "]
        if node is not None:
            if prop is not None:
                parts.append(f"{node.fullpath}:{prop.name}: ")
            else:
                parts.append(f"{node.fullpath}: ")
        parts.append(message + "\n")

        if prop is None and pos is not None and node is not None:
            parts.extend(f"  also defined at {extra}\n" for extra in node.srcpos[1:])

        text = "".join(parts)
        self.messages.append(text)
        sys.stderr.write(text)

    def fail(
        self,
        dti: DtInfo,
        node: Node | None,
        message: str,
        prop: Property | None = None,
    ) -> None:
        """Mark the check failed and report ``message`` against a node or property."""
        self.status = CheckStatus.FAILED
        self._report(dti, node, prop, message)

    def run(self, dti: DtInfo) -> bool:
        """Run the check (and its prerequisites) once; True if an error resulted."""
        assert not self.inprogress, f"check {self.name!r} depends on itself"
        error = False

        if self.status is CheckStatus.UNCHECKED:
            self.inprogress = True
            try:
                for prereq in self.prereqs:
                    error = error or prereq.run(dti)
                    if prereq.status is not CheckStatus.PASSED:
                        self.status = CheckStatus.PREREQ
                        self._report(
                            dti, None, None, f"Failed prerequisite '{prereq.name}'"
                        )

                if self.status is CheckStatus.UNCHECKED:
                    if self.fn is not None:
                        for node in dti.dt.walk():
                            self.fn(self, dti, node)
                    if self.status is CheckStatus.UNCHECKED:
                        self.status = CheckStatus.PASSED
            finally:
                self.inprogress = False

        if self.status is not CheckStatus.PASSED and self.error:
            error = True
        return error