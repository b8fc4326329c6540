"""Characterization table models.

A table is indexed by zero to three axes, each tagged with the physical
quantity it is parameterized over. Values between index points are found by
linear interpolation; values outside the characterized range are linearly
extrapolated from the edge segments.
"""

from enum import Enum
from math import prod
from typing import TYPE_CHECKING, Any, Optional

import numpy as np
from pydantic import BaseModel, Field, PrivateAttr, field_validator, model_validator
from scipy.interpolate import RegularGridInterpolator

from .common import OperatingCondition, Unit, Units

if TYPE_CHECKING:
    from .liberty import LibertyCell


class TableAxisVariable(str, Enum):
    """Closed set of Liberty table axis variables (`variable_N` values)."""

    INPUT_TRANSITION_TIME = "input_transition_time"
    INPUT_NET_TRANSITION = "input_net_transition"
    TOTAL_OUTPUT_NET_CAPACITANCE = "total_output_net_capacitance"
    EQUAL_OR_OPPOSITE_OUTPUT_NET_CAPACITANCE = "equal_or_opposite_output_net_capacitance"
    RELATED_OUT_TOTAL_OUTPUT_NET_CAPACITANCE = "related_out_total_output_net_capacitance"
    RELATED_PIN_TRANSITION = "related_pin_transition"
    CONSTRAINED_PIN_TRANSITION = "constrained_pin_transition"
    OUTPUT_PIN_TRANSITION = "output_pin_transition"
    CONNECT_DELAY = "connect_delay"
    INPUT_NOISE_WIDTH = "input_noise_width"
    INPUT_NOISE_HEIGHT = "input_noise_height"
    INPUT_VOLTAGE = "input_voltage"
    OUTPUT_VOLTAGE = "output_voltage"
    TIME = "time"
    NORMALIZED_VOLTAGE = "normalized_voltage"

    @property
    def quantity(self) -> str:
        """Returns the physical quantity of the axis: time, capacitance, voltage or scalar."""
        if self in _TIME_VARIABLES:
            return "time"
        if self in _CAPACITANCE_VARIABLES:
            return "capacitance"
        if self in (TableAxisVariable.INPUT_VOLTAGE, TableAxisVariable.OUTPUT_VOLTAGE,
                    TableAxisVariable.INPUT_NOISE_HEIGHT):
            return "voltage"
        return "scalar"


_TIME_VARIABLES = frozenset(
    {
        TableAxisVariable.INPUT_TRANSITION_TIME,
        TableAxisVariable.INPUT_NET_TRANSITION,
        TableAxisVariable.RELATED_PIN_TRANSITION,
        TableAxisVariable.CONSTRAINED_PIN_TRANSITION,
        TableAxisVariable.OUTPUT_PIN_TRANSITION,
        TableAxisVariable.CONNECT_DELAY,
        TableAxisVariable.INPUT_NOISE_WIDTH,
        TableAxisVariable.TIME,
    }
)

_CAPACITANCE_VARIABLES = frozenset(
    {
        TableAxisVariable.TOTAL_OUTPUT_NET_CAPACITANCE,
        TableAxisVariable.EQUAL_OR_OPPOSITE_OUTPUT_NET_CAPACITANCE,
        TableAxisVariable.RELATED_OUT_TOTAL_OUTPUT_NET_CAPACITANCE,
    }
)


class TableAxis(BaseModel):
    """One dimension of a characterization table.

    Attributes:
        variable: The quantity this axis is indexed by.
        values: Strictly increasing index values, in SI units.
    """

    variable: TableAxisVariable
    values: list[float] = Field(min_length=1)

    @field_validator("values")
    @classmethod
    def validate_increasing(cls, v: list[float]) -> list[float]:
        """Index values must be strictly increasing."""
        for lo, hi in zip(v, v[1:]):
            if hi <= lo:
                raise ValueError(f"axis values are not strictly increasing: {v}")
        return v

    @property
    def size(self) -> int:
        return len(self.values)


class TableModel(BaseModel):
    """An axis-indexed lookup table with interpolation and reporting.

    Attributes:
        axis1: First index axis, or None for a constant table.
        axis2: Second index axis.
        axis3: Third index axis.
        values: Nested table values whose shape matches the axis lengths.
            A constant (order 0) table holds a single value.
    """

    axis1: Optional[TableAxis] = None
    axis2: Optional[TableAxis] = None
    axis3: Optional[TableAxis] = None
    values: list[Any] = Field(default_factory=list)

    _interpolator: Optional[RegularGridInterpolator] = PrivateAttr(default=None)

    @model_validator(mode="after")
    def validate_shape(self) -> "TableModel":
        """Checks axis ordering and reshapes values to the axis lengths."""
        if self.axis2 is not None and self.axis1 is None:
            raise ValueError("axis2 given without axis1")
        if self.axis3 is not None and self.axis2 is None:
            raise ValueError("axis3 given without axis2")

        arr = np.asarray(self.values, dtype=float)
        shape = tuple(axis.size for axis in self.axes)
        if arr.size != prod(shape):
            raise ValueError(
                f"table has {arr.size} values, axes {shape} require {prod(shape)}"
            )
        self.values = arr.reshape(shape).tolist() if shape else [float(arr.reshape(-1)[0])]
        return self

    @property
    def axes(self) -> list[TableAxis]:
        """Returns the present axes in order."""
        return [a for a in (self.axis1, self.axis2, self.axis3) if a is not None]

    @property
    def order(self) -> int:
        """Number of axes the table is indexed by (0 to 3)."""
        return len(self.axes)

    def _build_interpolator(self) -> Optional[RegularGridInterpolator]:
        # Single-point axes carry no slope and are collapsed before interpolation
        arr = np.asarray(self.values, dtype=float)
        index = tuple(slice(None) if a.size > 1 else 0 for a in self.axes)
        points = tuple(a.values for a in self.axes if a.size > 1)
        if not points:
            return None
        return RegularGridInterpolator(
            points,
            arr[index],
            bounds_error=False,
            fill_value=None,  # Extrapolate linearly from the edge segments
        )

    def lookup(self, value1: float, value2: float, value3: float) -> float:
        """Interpolates the raw table value at the given axis coordinates.

        Coordinates beyond the table order are ignored.
        """
        if self.order == 0:
            return float(self.values[0])

        if self._interpolator is None:
            self._interpolator = self._build_interpolator()
        if self._interpolator is None:
            # Every axis has a single index point
            return float(np.asarray(self.values, dtype=float).reshape(-1)[0])

        coords = (value1, value2, value3)[: self.order]
        query = [c for a, c in zip(self.axes, coords) if a.size > 1]
        return float(self._interpolator([query])[0])

    def scale_factor(self, cell: Optional["LibertyCell"], pvt: Optional[OperatingCondition]) -> float:
        """Returns the corner derating applied to looked-up values."""
        if cell is None or cell.library is None:
            return 1.0
        return cell.library.scale_factor(pvt)

    def find_value(
        self,
        cell: Optional["LibertyCell"],
        pvt: Optional[OperatingCondition],
        value1: float,
        value2: float,
        value3: float,
    ) -> float:
        """Finds the table value at an operating point, derated for the corner.

        Args:
            cell: The cell owning the table; its library supplies the scale factors.
            pvt: The operating corner, or None for the library default.
            value1: Coordinate on axis 1.
            value2: Coordinate on axis 2.
            value3: Coordinate on axis 3.

        Returns:
            The interpolated value in SI units.
        """
        return self.lookup(value1, value2, value3) * self.scale_factor(cell, pvt)

    def report_value(
        self,
        label: str,
        cell: Optional["LibertyCell"],
        pvt: Optional[OperatingCondition],
        value1: float,
        comment1: Optional[str],
        value2: float,
        value3: float,
        unit: Unit,
        digits: int,
    ) -> str:
        """Describes how a table value is found, one step per line.

        Only the axes the table actually has are listed.

        Args:
            label: Name of the reported quantity (e.g. "Power").
            cell: The cell owning the table.
            pvt: The operating corner.
            value1: Coordinate on axis 1.
            comment1: Optional note printed after the axis 1 coordinate.
            value2: Coordinate on axis 2.
            value3: Coordinate on axis 3.
            unit: Unit used to format the table value.
            digits: Number of decimals.

        Returns:
            The multi-line report.
        """
        units = cell.library.units if cell is not None and cell.library is not None else None
        lines = []
        if self.order == 0:
            lines.append(f"{label} is a constant table")
        else:
            lines.append(f"{label} Table is indexed by")
            for i, (axis, coord) in enumerate(zip(self.axes, (value1, value2, value3))):
                line = f"  {axis.variable.value} = {_format_axis_value(axis, coord, units, digits)}"
                if i == 0 and comment1:
                    line += f" ({comment1})"
                lines.append(line)

        raw = self.lookup(value1, value2, value3)
        scale = self.scale_factor(cell, pvt)
        lines.append(f"Table value = {unit.as_string(raw, digits)}")
        lines.append(f"PVT scale factor = {scale:.{digits}f}")
        lines.append(f"{label} = {unit.as_string(raw * scale, digits)} {unit.suffix}")
        return "\n".join(lines) + "\n"


def _format_axis_value(axis: TableAxis, value: float, units: Optional[Units], digits: int) -> str:
    if units is not None:
        quantity = axis.variable.quantity
        if quantity == "time":
            return f"{units.time_unit.as_string(value, digits)} {units.time_unit.suffix}"
        if quantity == "capacitance":
            return f"{units.capacitance_unit.as_string(value, digits)} {units.capacitance_unit.suffix}"
        if quantity == "voltage":
            return f"{units.voltage_unit.as_string(value, digits)} {units.voltage_unit.suffix}"
    return f"{value:.{digits}g}"
