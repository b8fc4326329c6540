"""Internal power arcs.

An internal power arc describes the power a cell dissipates internally when
one of its pins switches. Each arc holds up to two power models, one per output
edge sense, and each model wraps a characterization table indexed by input
transition time and/or output load capacitance.

Arcs are assembled while a library is read: the reader fills an
`InternalPowerAttrs` staging object, then `transfer()` moves its content into
an `InternalPowerContents` bundle shared by the `InternalPower` arcs built from
it. The owning cell releases each bundle once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Union

from ..exceptions import CriticalError, ResourceReleasedError, StagingConsumedError
from .common import OperatingCondition, RiseFall, Units
from .func_expr import FuncExpr
from .table import TableAxis, TableAxisVariable, TableModel

if TYPE_CHECKING:
    from .liberty import LibertyCell, LibertyPort

# Axis variables accepted by check_axis at library load time
_CHECKED_AXIS_VARIABLES = frozenset(
    {
        TableAxisVariable.CONSTRAINED_PIN_TRANSITION,
        TableAxisVariable.RELATED_PIN_TRANSITION,
        TableAxisVariable.RELATED_OUT_TOTAL_OUTPUT_NET_CAPACITANCE,
    }
)


class InternalPowerModel:
    """Power lookup for one edge sense of an internal power arc.

    The model owns an optional table. Without a table every query reports no
    power. With a table, the table order decides how many of the two stimulus
    values (input slew, load capacitance) are used as axis coordinates.

    Attributes:
        table: The owned table, or None when there is no characterization.
    """

    def __init__(self, table: Optional[TableModel]):
        self._table = table
        self._released = False

    @property
    def table(self) -> Optional[TableModel]:
        return self._table

    @property
    def released(self) -> bool:
        return self._released

    def power(
        self,
        cell: Optional[LibertyCell],
        pvt: Optional[OperatingCondition],
        in_slew: float,
        load_cap: float,
    ) -> float:
        """Returns the internal power for a transition.

        Args:
            cell: The cell the arc belongs to.
            pvt: The operating corner; None selects the library default.
            in_slew: Input transition time in seconds.
            load_cap: Output load capacitance in farads.

        Returns:
            The interpolated power, or 0.0 without a table.

        Raises:
            CriticalError: If the table order or an axis variable is unsupported.
        """
        if self._table is None:
            return 0.0
        value1, value2, value3 = self.find_axis_values(in_slew, load_cap)
        return self._table.find_value(cell, pvt, value1, value2, value3)

    def report_power(
        self,
        cell: Optional[LibertyCell],
        pvt: Optional[OperatingCondition],
        in_slew: float,
        load_cap: float,
        units: Units,
        digits: int = 3,
    ) -> str:
        """Returns a human-readable account of the power lookup.

        Args:
            cell: The cell the arc belongs to.
            pvt: The operating corner.
            in_slew: Input transition time in seconds.
            load_cap: Output load capacitance in farads.
            units: Units used for formatting; the power unit labels the result.
            digits: Number of decimals.

        Returns:
            The table report, or an empty string without a table.
        """
        if self._table is None:
            return ""
        value1, value2, value3 = self.find_axis_values(in_slew, load_cap)
        return self._table.report_value(
            "Power", cell, pvt, value1, None, value2, value3, units.power_unit, digits
        )

    def find_axis_values(self, in_slew: float, load_cap: float) -> tuple[float, float, float]:
        """Maps the stimulus onto the table axes.

        Coordinates for axes the table does not have are 0.0.

        Raises:
            CriticalError: If the table order is not 0 to 3, or an axis variable
                is neither input transition time nor output capacitance.
        """
        table = self._table
        order = table.order
        if order == 0:
            return (0.0, 0.0, 0.0)
        if order == 1:
            return (self.axis_value(table.axis1, in_slew, load_cap), 0.0, 0.0)
        if order == 2:
            return (
                self.axis_value(table.axis1, in_slew, load_cap),
                self.axis_value(table.axis2, in_slew, load_cap),
                0.0,
            )
        if order == 3:
            return (
                self.axis_value(table.axis1, in_slew, load_cap),
                self.axis_value(table.axis2, in_slew, load_cap),
                self.axis_value(table.axis3, in_slew, load_cap),
            )
        raise CriticalError("unsupported table order")

    @staticmethod
    def axis_value(axis: TableAxis, in_slew: float, load_cap: float) -> float:
        """Returns the stimulus value an axis is indexed by."""
        variable = axis.variable
        if variable == TableAxisVariable.INPUT_TRANSITION_TIME:
            return in_slew
        if variable == TableAxisVariable.TOTAL_OUTPUT_NET_CAPACITANCE:
            return load_cap
        raise CriticalError("unsupported table axes")

    @staticmethod
    def check_axes(table: TableModel) -> bool:
        """Validates the axes of a power table at library load time.

        Axes 1 and 2, when present, must pass `check_axis`; a third axis is
        never accepted.
        """
        axes_ok = True
        if table.axis1 is not None:
            axes_ok &= InternalPowerModel.check_axis(table.axis1)
        if table.axis2 is not None:
            axes_ok &= InternalPowerModel.check_axis(table.axis2)
        axes_ok &= table.axis3 is None
        return axes_ok

    @staticmethod
    def check_axis(axis: TableAxis) -> bool:
        return axis.variable in _CHECKED_AXIS_VARIABLES

    def release(self) -> None:
        """Releases the owned table.

        Raises:
            ResourceReleasedError: If the model was already released.
        """
        if self._released:
            raise ResourceReleasedError("internal power model already released")
        self._table = None
        self._released = True

    def __repr__(self) -> str:
        order = self._table.order if self._table is not None else None
        return f"InternalPowerModel(order={order}, released={self._released})"


@dataclass(frozen=True)
class SharedPowerModel:
    """One power model used for both edge senses."""

    shared: InternalPowerModel

    def model(self, rf: RiseFall) -> Optional[InternalPowerModel]:
        return self.shared

    def release(self) -> None:
        self.shared.release()


@dataclass(frozen=True)
class SplitPowerModels:
    """Independently owned power models for the rise and fall senses."""

    rise: Optional[InternalPowerModel] = None
    fall: Optional[InternalPowerModel] = None

    def model(self, rf: RiseFall) -> Optional[InternalPowerModel]:
        return self.rise if rf is RiseFall.RISE else self.fall

    def release(self) -> None:
        for model in (self.rise, self.fall):
            if model is not None:
                model.release()


PowerModels = Union[SharedPowerModel, SplitPowerModels]


def _distinct_models(models: PowerModels) -> list[InternalPowerModel]:
    distinct: list[InternalPowerModel] = []
    for rf in RiseFall.range():
        model = models.model(rf)
        if model is not None and not any(model is m for m in distinct):
            distinct.append(model)
    return distinct


def _with_model(models: PowerModels, rf: RiseFall, model: Optional[InternalPowerModel]) -> PowerModels:
    other = models.model(rf.opposite)
    if model is not None and model is other:
        return SharedPowerModel(model)
    if rf is RiseFall.RISE:
        return SplitPowerModels(rise=model, fall=other)
    return SplitPowerModels(rise=other, fall=model)


@dataclass(eq=False)
class InternalPowerContents:
    """The condition, models and pg pin of one internal_power group.

    Built by `InternalPowerAttrs.transfer()`. Several arcs may share one
    bundle (one arc per related pin); the owning cell releases it once.
    """

    when: Optional[FuncExpr] = None
    models: PowerModels = field(default_factory=SplitPowerModels)
    related_pg_pin: Optional[str] = None
    released: bool = field(default=False, repr=False)

    def model(self, rf: RiseFall) -> Optional[InternalPowerModel]:
        return self.models.model(rf)

    def release(self) -> None:
        if self.released:
            raise ResourceReleasedError("internal power contents already released")
        self.models.release()
        if self.when is not None:
            self.when.delete_subexprs()
        self.when = None
        self.models = SplitPowerModels()
        self.related_pg_pin = None
        self.released = True


class InternalPowerAttrs:
    """Staging area for the attributes of an internal_power group.

    The reader fills the condition, the models and the related pg pin, then
    calls `transfer()` to hand them to the arcs. After transfer the staging
    object is consumed: its fields are empty, setters raise
    `StagingConsumedError` and `delete_contents()` has nothing left to free.
    If the group is discarded instead, `delete_contents()` releases everything.
    """

    def __init__(self):
        self._when: Optional[FuncExpr] = None
        self._models: PowerModels = SplitPowerModels()
        self._related_pg_pin: Optional[str] = None
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def when(self) -> Optional[FuncExpr]:
        return self._when

    @property
    def models(self) -> PowerModels:
        return self._models

    @property
    def related_pg_pin(self) -> Optional[str]:
        return self._related_pg_pin

    def model(self, rf: RiseFall) -> Optional[InternalPowerModel]:
        return self._models.model(rf)

    def _check_open(self) -> None:
        if self._consumed:
            raise StagingConsumedError("internal power attributes were already transferred")

    def set_when(self, when: Optional[FuncExpr]) -> None:
        """Sets the condition, releasing a condition it replaces."""
        self._check_open()
        if self._when is not None and self._when is not when:
            self._when.delete_subexprs()
        self._when = when

    def set_model(self, rf: RiseFall, model: Optional[InternalPowerModel]) -> None:
        """Sets the model of one edge sense.

        Setting the wrapper that the other sense already holds makes the slot
        shared; setting one sense of a shared slot splits it. A model no longer
        held by either sense is released.
        """
        self._check_open()
        self._replace_models(_with_model(self._models, rf, model))

    def set_shared_model(self, model: InternalPowerModel) -> None:
        """Uses one model for both edge senses."""
        self._check_open()
        self._replace_models(SharedPowerModel(model))

    def _replace_models(self, models: PowerModels) -> None:
        # Models no longer held by either sense are released here
        kept = [models.model(rf) for rf in RiseFall.range()]
        for old in _distinct_models(self._models):
            if not any(old is m for m in kept):
                old.release()
        self._models = models

    def set_related_pg_pin(self, related_pg_pin: Optional[str]) -> None:
        self._check_open()
        self._related_pg_pin = related_pg_pin

    def transfer(self) -> InternalPowerContents:
        """Moves the staged content into a bundle and marks the staging consumed.

        Raises:
            StagingConsumedError: If the content was already transferred.
        """
        self._check_open()
        contents = InternalPowerContents(
            when=self._when,
            models=self._models,
            related_pg_pin=self._related_pg_pin,
        )
        self._clear()
        self._consumed = True
        return contents

    def delete_contents(self) -> None:
        """Releases everything the staging object still owns."""
        if self._consumed:
            return
        self._models.release()
        if self._when is not None:
            self._when.delete_subexprs()
        self._clear()

    def _clear(self) -> None:
        self._when = None
        self._models = SplitPowerModels()
        self._related_pg_pin = None


class InternalPower:
    """An internal power arc between a port and a related port.

    The arc registers itself with its cell on construction and is read-only
    afterwards. It borrows its ports from the cell and its content bundle is
    owned by the cell.

    Attributes:
        port: The port the power is characterized on.
        related_port: The switching port, or None for arcs without related_pin.
        contents: Condition, models and related pg pin of the arc.
    """

    def __init__(
        self,
        cell: LibertyCell,
        port: LibertyPort,
        related_port: Optional[LibertyPort],
        contents: InternalPowerContents,
    ):
        self._port = port
        self._related_port = related_port
        self._contents = contents
        cell.add_internal_power(self)

    @classmethod
    def from_attrs(
        cls,
        cell: LibertyCell,
        port: LibertyPort,
        related_port: Optional[LibertyPort],
        attrs: InternalPowerAttrs,
    ) -> "InternalPower":
        """Builds an arc, transferring the staged attributes to it."""
        return cls(cell, port, related_port, attrs.transfer())

    @property
    def port(self) -> LibertyPort:
        return self._port

    @property
    def related_port(self) -> Optional[LibertyPort]:
        return self._related_port

    @property
    def contents(self) -> InternalPowerContents:
        return self._contents

    @property
    def when(self) -> Optional[FuncExpr]:
        return self._contents.when

    @property
    def related_pg_pin(self) -> Optional[str]:
        return self._contents.related_pg_pin

    @property
    def liberty_cell(self) -> Optional[LibertyCell]:
        return self._port.liberty_cell

    def model(self, rf: RiseFall) -> Optional[InternalPowerModel]:
        return self._contents.model(rf)

    def power(
        self,
        rf: RiseFall,
        pvt: Optional[OperatingCondition],
        in_slew: float,
        load_cap: float,
    ) -> float:
        """Returns the internal power for an output transition of sense `rf`.

        Returns 0.0 when the arc has no model for that sense.
        """
        model = self.model(rf)
        if model is None:
            return 0.0
        return model.power(self.liberty_cell, pvt, in_slew, load_cap)

    def report_power(
        self,
        rf: RiseFall,
        pvt: Optional[OperatingCondition],
        in_slew: float,
        load_cap: float,
        units: Units,
        digits: int = 3,
    ) -> str:
        model = self.model(rf)
        if model is None:
            return ""
        return model.report_power(self.liberty_cell, pvt, in_slew, load_cap, units, digits)

    def __repr__(self) -> str:
        related = self._related_port.name if self._related_port is not None else None
        return f"InternalPower(port={self._port.name!r}, related_port={related!r}, when={str(self.when) if self.when else None!r})"
