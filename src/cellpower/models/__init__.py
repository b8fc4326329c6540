"""Data models for cell libraries and internal power"""

from .common import OperatingCondition, RiseFall, ScaleFactors, Unit, Units
from .func_expr import FuncExpr, FuncOp
from .internal_power import (
    InternalPower,
    InternalPowerAttrs,
    InternalPowerContents,
    InternalPowerModel,
    SharedPowerModel,
    SplitPowerModels,
)
from .liberty import LibertyCell, LibertyLibrary, LibertyPort
from .table import TableAxis, TableAxisVariable, TableModel

__all__ = [
    "RiseFall",
    "OperatingCondition",
    "ScaleFactors",
    "Unit",
    "Units",
    "FuncExpr",
    "FuncOp",
    "TableAxis",
    "TableAxisVariable",
    "TableModel",
    "InternalPowerModel",
    "InternalPower",
    "InternalPowerAttrs",
    "InternalPowerContents",
    "SharedPowerModel",
    "SplitPowerModels",
    "LibertyLibrary",
    "LibertyCell",
    "LibertyPort",
]
