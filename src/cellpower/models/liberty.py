"""Liberty library, cell and port objects.

These classes form the object graph the internal power arcs live in: a
library owns its cells, a cell owns its ports and its internal power arcs, and
ports point back at their cell. They are plain dataclasses compared by
identity because of these back references.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from .common import OperatingCondition, ScaleFactors, Units

if TYPE_CHECKING:
    from .internal_power import InternalPower, InternalPowerContents

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class LibertyPort:
    """A pin (or bus) of a library cell.

    Attributes:
        name: The port name.
        cell: The cell the port belongs to.
        direction: Direction of signal flow (input, output, inout, internal).
        capacitance: Input capacitance in farads.
    """

    name: str
    cell: Optional[LibertyCell] = field(default=None, repr=False)
    direction: str = "input"
    capacitance: Optional[float] = None

    @property
    def liberty_cell(self) -> Optional[LibertyCell]:
        return self.cell

    @property
    def is_output(self) -> bool:
        return self.direction in ("output", "inout")


@dataclass(eq=False)
class LibertyCell:
    """A standard cell definition with its internal power arcs.

    The cell is the single owner of the content bundles its power arcs were
    built from; `release()` frees each bundle exactly once.

    Attributes:
        name: The name of the cell (e.g., "NAND2_X1").
        library: The library the cell belongs to.
        area: The cell area.
        ports: Ports keyed by name.
        pg_pins: Names of the power/ground pins.
    """

    name: str
    library: Optional[LibertyLibrary] = field(default=None, repr=False)
    area: float = 0.0
    ports: dict[str, LibertyPort] = field(default_factory=dict)
    pg_pins: list[str] = field(default_factory=list)
    _internal_powers: list[InternalPower] = field(default_factory=list, init=False, repr=False)
    _owned_contents: dict[int, InternalPowerContents] = field(default_factory=dict, init=False, repr=False)

    def add_port(self, port: LibertyPort) -> LibertyPort:
        port.cell = self
        self.ports[port.name] = port
        return port

    def port(self, name: str) -> Optional[LibertyPort]:
        return self.ports.get(name)

    @property
    def liberty_library(self) -> Optional[LibertyLibrary]:
        return self.library

    def add_internal_power(self, power: InternalPower) -> None:
        """Registers an internal power arc and takes ownership of its contents."""
        self._internal_powers.append(power)
        # Bundles are keyed by identity; arcs split over related pins share one
        self._owned_contents.setdefault(id(power.contents), power.contents)

    def internal_powers(
        self,
        port: Optional[LibertyPort] = None,
        related_port: Optional[LibertyPort] = None,
    ) -> list[InternalPower]:
        """Returns the internal power arcs, optionally filtered by port and related port."""
        return [
            p
            for p in self._internal_powers
            if (port is None or p.port is port)
            and (related_port is None or p.related_port is related_port)
        ]

    @property
    def has_internal_power(self) -> bool:
        return bool(self._internal_powers)

    def release(self) -> None:
        """Releases the power models and conditions of every arc on this cell."""
        logger.debug(f"Releasing {len(self._owned_contents)} internal power groups of {self.name}")
        for contents in self._owned_contents.values():
            contents.release()
        self._owned_contents.clear()
        self._internal_powers.clear()


@dataclass(eq=False)
class LibertyLibrary:
    """A complete Liberty library.

    Attributes:
        name: Library name.
        units: Units declared by the library.
        nom_process: Nominal process scaling.
        nom_voltage: Nominal voltage.
        nom_temperature: Nominal temperature.
        operating_conditions: Named operating conditions.
        default_operating_conditions: Name of the default operating condition.
        scale_factors: Internal power k-factors.
        cells: Cells keyed by name.
    """

    name: str
    units: Units = field(default_factory=Units)
    nom_process: Optional[float] = None
    nom_voltage: Optional[float] = None
    nom_temperature: Optional[float] = None
    operating_conditions: dict[str, OperatingCondition] = field(default_factory=dict)
    default_operating_conditions: Optional[str] = None
    scale_factors: ScaleFactors = field(default_factory=ScaleFactors)
    cells: dict[str, LibertyCell] = field(default_factory=dict, repr=False)

    def add_cell(self, cell: LibertyCell) -> LibertyCell:
        cell.library = self
        self.cells[cell.name] = cell
        return cell

    def cell(self, name: str) -> Optional[LibertyCell]:
        return self.cells.get(name)

    @property
    def cell_count(self) -> int:
        """Returns the total number of cells in the library."""
        return len(self.cells)

    @property
    def default_pvt(self) -> Optional[OperatingCondition]:
        """Returns the default operating condition, if the library names one."""
        if self.default_operating_conditions is None:
            return None
        return self.operating_conditions.get(self.default_operating_conditions)

    def scale_factor(self, pvt: Optional[OperatingCondition]) -> float:
        """Returns the internal power derating for a corner.

        Args:
            pvt: The operating corner. None selects the default operating condition.

        Returns:
            The multiplicative scale factor (1.0 at nominal conditions).
        """
        if pvt is None:
            pvt = self.default_pvt
        if pvt is None:
            return 1.0
        return self.scale_factors.scale(
            pvt, self.nom_process, self.nom_voltage, self.nom_temperature
        )

    def release(self) -> None:
        for cell in self.cells.values():
            cell.release()
