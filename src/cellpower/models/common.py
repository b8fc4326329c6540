"""Common type definitions shared across Cell-Power models.

This module defines fundamental types like transition edges, operating
conditions, physical unit handling and internal power scale factors that are
used throughout the framework.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RiseFall(str, Enum):
    """Direction of an output transition (edge sense).

    Each member carries a stable index so per-edge data can be kept in
    two-slot containers.
    """

    RISE = "rise"
    FALL = "fall"

    @property
    def index(self) -> int:
        """Returns 0 for RISE and 1 for FALL."""
        return 0 if self is RiseFall.RISE else 1

    @property
    def opposite(self) -> "RiseFall":
        return RiseFall.FALL if self is RiseFall.RISE else RiseFall.RISE

    @classmethod
    def range(cls) -> tuple["RiseFall", "RiseFall"]:
        """Returns both edge senses in index order."""
        return (cls.RISE, cls.FALL)


class OperatingCondition(BaseModel):
    """Specification of a PVT (Process, Voltage, Temperature) operating condition.

    Attributes:
        name: The name of the operating condition (e.g., "ss_0p72v_125c").
        process: The process scaling factor (1.0 is nominal).
        voltage: The supply voltage in Volts.
        temperature: The junction temperature in Celsius.
    """

    name: str = ""
    process: float = Field(default=1.0, description="Process scaling factor")
    voltage: float = Field(default=1.0, description="Nominal voltage in Volts")
    temperature: float = Field(default=25.0, description="Temperature in Celsius")

    model_config = {"frozen": False}


# SI prefixes accepted in Liberty unit strings
_SI_PREFIXES = {
    "a": 1e-18,
    "f": 1e-15,
    "p": 1e-12,
    "n": 1e-9,
    "u": 1e-6,
    "m": 1e-3,
    "": 1.0,
    "k": 1e3,
}

_UNIT_PATTERN = re.compile(r"^\s*([-+]?[\d.]+(?:[eE][-+]?\d+)?)?\s*,?\s*([A-Za-z]+)\s*$")


class Unit(BaseModel):
    """A library unit for one physical quantity.

    Values inside the models are always kept in SI (seconds, farads, volts,
    watts); a Unit converts between SI and the library's declared unit.

    Attributes:
        scale: SI value of one library unit (e.g. 1e-9 for "1ns").
        suffix: Printable unit name (e.g. "ns", "pf", "100ps").
        digits: Default number of decimals when formatting.
    """

    scale: float = 1.0
    suffix: str = ""
    digits: int = 3

    @classmethod
    def from_liberty(cls, spec, base: str) -> "Unit":
        """Parses a Liberty unit specification.

        Args:
            spec: Either a string like "1ns" / "100ps" / "1nW", or a
                (multiplier, unit) pair as used by `capacitive_load_unit`.
            base: The SI base symbol of the quantity ("s", "f", "v", "w", "ohm").

        Returns:
            The parsed Unit.

        Raises:
            ValueError: If the specification cannot be interpreted.
        """
        if isinstance(spec, (tuple, list)):
            if len(spec) < 2:
                raise ValueError(f"Invalid unit specification: {spec!r}")
            multiplier = float(spec[0])
            label = str(spec[1]).strip().strip("\"'")
        else:
            match = _UNIT_PATTERN.match(str(spec).strip().strip("\"'"))
            if not match:
                raise ValueError(f"Invalid unit specification: {spec!r}")
            multiplier = float(match.group(1)) if match.group(1) else 1.0
            label = match.group(2)

        name = label.lower()
        if not name.endswith(base):
            raise ValueError(f"Unit '{label}' is not a '{base}' unit")
        prefix = name[: -len(base)]
        if prefix not in _SI_PREFIXES:
            raise ValueError(f"Unknown unit prefix '{prefix}' in '{label}'")

        suffix = label if multiplier == 1.0 else f"{multiplier:g}{label}"
        return cls(scale=multiplier * _SI_PREFIXES[prefix], suffix=suffix)

    def to_si(self, value: float) -> float:
        """Converts a value in library units to SI."""
        return value * self.scale

    def from_si(self, value: float) -> float:
        """Converts an SI value to library units."""
        return value / self.scale

    def as_string(self, value: float, digits: Optional[int] = None) -> str:
        """Formats an SI value in library units, without the suffix."""
        if digits is None:
            digits = self.digits
        return f"{self.from_si(value):.{digits}f}"

    def __str__(self) -> str:
        return self.suffix


class Units(BaseModel):
    """The set of units declared by a library.

    Attributes:
        time_unit: Unit of time values (`time_unit`).
        capacitance_unit: Unit of capacitance values (`capacitive_load_unit`).
        voltage_unit: Unit of voltages (`voltage_unit`).
        power_unit: Unit used for power values and power reports.
    """

    time_unit: Unit = Field(default_factory=lambda: Unit(scale=1e-9, suffix="ns"))
    capacitance_unit: Unit = Field(default_factory=lambda: Unit(scale=1e-12, suffix="pf"))
    voltage_unit: Unit = Field(default_factory=lambda: Unit(scale=1.0, suffix="V"))
    power_unit: Unit = Field(default_factory=lambda: Unit(scale=1e-9, suffix="nW"))


class ScaleFactors(BaseModel):
    """Internal power derating coefficients (k-factors).

    The scale factor at a corner is
    (1 + k_process * dP) * (1 + k_volt * dV) * (1 + k_temp * dT),
    where the deltas are taken against the library's nominal conditions.
    """

    k_process: float = 0.0
    k_volt: float = 0.0
    k_temp: float = 0.0

    def scale(
        self,
        pvt: OperatingCondition,
        nom_process: Optional[float],
        nom_voltage: Optional[float],
        nom_temperature: Optional[float],
    ) -> float:
        factor = 1.0
        if nom_process is not None:
            factor *= 1.0 + self.k_process * (pvt.process - nom_process)
        if nom_voltage is not None:
            factor *= 1.0 + self.k_volt * (pvt.voltage - nom_voltage)
        if nom_temperature is not None:
            factor *= 1.0 + self.k_temp * (pvt.temperature - nom_temperature)
        return factor
