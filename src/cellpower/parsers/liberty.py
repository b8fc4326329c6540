"""Liberty (.lib) reader using Lark.

Parses Liberty text with a formal grammar (liberty.lark), transforms the parse
tree into nested group dictionaries and builds the library object graph from
them: units, operating conditions, table templates, cells, ports and internal
power arcs.

Internal power groups are assembled through `InternalPowerAttrs`: the reader
stages the condition, the rise/fall (or shared) power models and the related
pg pin, then transfers them to one `InternalPower` arc per related pin.
"""

import functools
import logging
import re
from pathlib import Path
from typing import Any, Optional

from lark import Lark, Token, Transformer, Tree
from lark.exceptions import LarkError

from ..exceptions import LibraryError
from ..models.common import OperatingCondition, RiseFall, ScaleFactors, Unit, Units
from ..models.internal_power import InternalPower, InternalPowerAttrs, InternalPowerModel
from ..models.liberty import LibertyCell, LibertyLibrary, LibertyPort
from ..models.table import TableAxis, TableAxisVariable, TableModel
from .base import BaseParser
from .func_expr import parse_func_expr

logger = logging.getLogger(__name__)

# Load grammar from file (relative to this module)
GRAMMAR_PATH = Path(__file__).parent / "liberty.lark"

# Pre-compiled regex for backslash line continuation
_BACKSLASH_CONTINUATION = re.compile(r"\\\s*\n\s*")

_TEMPLATE_GROUPS = ("lu_table_template", "power_lut_template")
_PORT_GROUPS = ("pin", "bus", "bundle")

# Axis variables the power query can map the stimulus onto
_QUERY_AXIS_VARIABLES = frozenset(
    {
        TableAxisVariable.INPUT_TRANSITION_TIME,
        TableAxisVariable.TOTAL_OUTPUT_NET_CAPACITANCE,
    }
)


@functools.cache
def _get_lark_parser() -> Lark:
    """Returns a cached Lark parser instance.

    Uses functools.cache to ensure the parser is only created once,
    improving performance for batch processing.
    """
    return Lark(
        GRAMMAR_PATH.read_text(),
        parser="lalr",
        propagate_positions=True,
        maybe_placeholders=False,
    )


class LibertyTransformer(Transformer):
    """Transforms the Lark parse tree into nested group dictionaries.

    Each group becomes {"_type", "_args", "_qualifier", "_attributes", "_groups"}.
    """

    # === Value transformations ===

    def string_value(self, items) -> str:
        """Handle quoted strings, stripping quotes."""
        return str(items[0])[1:-1]

    def number_value(self, items) -> float:
        """Convert numeric tokens to float."""
        return float(items[0])

    def name_value(self, items) -> str:
        """Handle unquoted identifiers."""
        return str(items[0])

    def arg_list(self, items) -> list:
        """List of arguments."""
        return list(items)

    # === Attribute transformations ===

    def simple_attr(self, items) -> tuple[str, Any]:
        """Simple attribute: name : value ;"""
        return (str(items[0]), items[1])

    def complex_attr(self, items) -> tuple[str, list]:
        """Complex attribute: name ( args ) ;"""
        args = items[1] if len(items) > 1 else []
        return (str(items[0]), args)

    # === Group transformations ===

    def group(self, items) -> dict:
        """Parse a group structure: NAME, [arg_list], statements."""
        name = str(items[0])
        rest = items[1:]
        args: list = []
        if rest and isinstance(rest[0], list):
            args = rest[0]
            rest = rest[1:]

        result = {
            "_type": name,
            "_args": args,
            "_qualifier": str(args[0]) if args else None,
            "_attributes": {},
            "_groups": [],
        }
        for item in rest:
            if isinstance(item, tuple):
                attr_name, value = item
                result["_attributes"][attr_name] = value
            elif isinstance(item, dict):
                result["_groups"].append(item)
        return result

    def start(self, items) -> dict:
        """Entry point - return library AST."""
        return items[0]


class LibertyParser(BaseParser[LibertyLibrary]):
    """Liberty reader building cells with internal power arcs."""

    def __init__(self):
        """Initialize the Lark parser with the Liberty grammar."""
        # Use cached parser instance for performance
        self._parser = _get_lark_parser()

    def parse(self, path: Path) -> LibertyLibrary:
        """Parses a Liberty file from a given path.

        Args:
            path: Path to the Liberty file (optionally gzip compressed).

        Returns:
            A populated LibertyLibrary object.
        """
        logger.info(f"Parsing Liberty file: {path}")
        content = self._read_file(path, encoding="utf-8", errors="replace")
        name = path.name.split(".")[0]
        return self.parse_string(content, name)

    def parse_string(self, content: str, name: str = "unknown") -> LibertyLibrary:
        """Parses Liberty content from a string.

        Args:
            content: The Liberty file content.
            name: Name used when the library group has none.

        Returns:
            A populated LibertyLibrary object.

        Raises:
            LibraryError: On syntax errors or inconsistent library data.
        """
        logger.debug(f"Parsing content string, length: {len(content)}")

        # Preprocess: remove backslash line continuations
        content = _BACKSLASH_CONTINUATION.sub(" ", content)

        try:
            tree = self._parser.parse(content)
        except LarkError as e:
            raise LibraryError(f"syntax error: {e}", name) from e

        ast = LibertyTransformer().transform(tree)
        if ast.get("_type") != "library":
            raise LibraryError(f"expected a library group, found '{ast.get('_type')}'", name)

        return self._build_library(ast, name)

    def _build_library(self, ast: dict, default_name: str) -> LibertyLibrary:
        """Converts the transformed AST to a LibertyLibrary."""
        attrs = ast.get("_attributes", {})
        groups = ast.get("_groups", [])
        lib_name = ast.get("_qualifier") or default_name

        library = LibertyLibrary(
            name=lib_name,
            units=self._build_units(attrs, lib_name),
            nom_process=self._get_float(attrs, "nom_process"),
            nom_voltage=self._get_float(attrs, "nom_voltage"),
            nom_temperature=self._get_float(attrs, "nom_temperature"),
            default_operating_conditions=self._get_str(attrs, "default_operating_conditions"),
            scale_factors=ScaleFactors(
                k_process=self._get_float(attrs, "k_process_internal_power", 0.0),
                k_volt=self._get_float(attrs, "k_volt_internal_power", 0.0),
                k_temp=self._get_float(attrs, "k_temp_internal_power", 0.0),
            ),
        )

        for grp in groups:
            if grp["_type"] == "operating_conditions":
                pvt = self._build_operating_condition(grp, library)
                library.operating_conditions[pvt.name] = pvt

        if (
            library.default_operating_conditions is not None
            and library.default_operating_conditions not in library.operating_conditions
        ):
            logger.warning(
                f"Default operating conditions '{library.default_operating_conditions}' not defined in {lib_name}"
            )

        templates = {}
        for grp in groups:
            if grp["_type"] in _TEMPLATE_GROUPS and grp["_qualifier"]:
                templates[grp["_qualifier"]] = self._build_template(grp, lib_name)

        for grp in groups:
            if grp["_type"] == "cell":
                self._build_cell(grp, library, templates)

        logger.debug(f"Library {lib_name}: {library.cell_count} cells, {len(templates)} templates")
        return library

    def _build_units(self, attrs: dict, lib_name: str) -> Units:
        units = Units()
        specs = (
            ("time_unit", "time_unit", "s"),
            ("capacitive_load_unit", "capacitance_unit", "f"),
            ("voltage_unit", "voltage_unit", "v"),
            ("leakage_power_unit", "power_unit", "w"),
        )
        for attr_name, field_name, base in specs:
            spec = attrs.get(attr_name)
            if spec is None:
                continue
            if isinstance(spec, list) and len(spec) == 1:
                spec = spec[0]
            try:
                setattr(units, field_name, Unit.from_liberty(spec, base))
            except ValueError as e:
                raise LibraryError(f"{attr_name}: {e}", lib_name) from e
        return units

    def _build_operating_condition(self, grp: dict, library: LibertyLibrary) -> OperatingCondition:
        attrs = grp["_attributes"]
        return OperatingCondition(
            name=grp["_qualifier"] or "",
            process=self._get_float(attrs, "process", library.nom_process or 1.0),
            voltage=self._get_float(attrs, "voltage", library.nom_voltage or 1.0),
            temperature=self._get_float(attrs, "temperature", library.nom_temperature or 25.0),
        )

    def _build_template(self, grp: dict, lib_name: str) -> dict:
        """Reads variable_N / index_N of a table template."""
        attrs = grp["_attributes"]
        variables = []
        indices = []
        for i in (1, 2, 3):
            var_name = self._get_str(attrs, f"variable_{i}")
            if var_name is None:
                break
            variables.append(self._axis_variable(var_name, lib_name))
            indices.append(self._extract_index(attrs.get(f"index_{i}")))
        return {"variables": variables, "indices": indices}

    def _axis_variable(self, name: str, source: str) -> TableAxisVariable:
        try:
            return TableAxisVariable(name)
        except ValueError as e:
            raise LibraryError(f"unknown table axis variable '{name}'", source) from e

    def _build_cell(self, grp: dict, library: LibertyLibrary, templates: dict) -> LibertyCell:
        """Build a cell, its ports and their internal power arcs."""
        attrs = grp["_attributes"]
        nested = grp["_groups"]

        cell = library.add_cell(
            LibertyCell(
                name=grp["_qualifier"] or "unknown",
                area=self._get_float(attrs, "area", 0.0),
            )
        )
        units = library.units

        # Ports first so related_pin references resolve regardless of order
        port_groups = []
        for n in self._port_groups(nested):
            capacitance = self._get_float(n["_attributes"], "capacitance")
            for port_name in n["_args"]:
                port = cell.add_port(
                    LibertyPort(
                        name=str(port_name),
                        direction=self._get_str(n["_attributes"], "direction", "input"),
                        capacitance=units.capacitance_unit.to_si(capacitance)
                        if capacitance is not None
                        else None,
                    )
                )
                port_groups.append((port, n))

        for n in nested:
            if n["_type"] == "pg_pin" and n["_qualifier"]:
                cell.pg_pins.append(n["_qualifier"])

        for port, n in port_groups:
            for power in n["_groups"]:
                if power["_type"] == "internal_power":
                    self._build_internal_power(power, cell, port, templates)

        return cell

    def _port_groups(self, groups: list[dict]):
        for grp in groups:
            if grp["_type"] in _PORT_GROUPS:
                yield grp
                # Pins declared inside a bus or bundle are ports as well
                yield from self._port_groups(grp["_groups"])

    def _build_internal_power(
        self, grp: dict, cell: LibertyCell, port: LibertyPort, templates: dict
    ) -> list[InternalPower]:
        """Stages an internal_power group and builds its arcs."""
        attrs = grp["_attributes"]
        source = f"{cell.name}/{port.name}"

        power_attrs = InternalPowerAttrs()
        try:
            when = self._get_str(attrs, "when")
            if when:
                power_attrs.set_when(parse_func_expr(when))
            power_attrs.set_related_pg_pin(self._get_str(attrs, "related_pg_pin"))

            for n in grp["_groups"]:
                kind = n["_type"]
                if kind not in ("rise_power", "fall_power", "power"):
                    continue
                table = self._build_table(n, templates, cell.library.units, source)
                if table is None:
                    continue
                model = InternalPowerModel(table)
                if kind == "power":
                    power_attrs.set_shared_model(model)
                elif kind == "rise_power":
                    power_attrs.set_model(RiseFall.RISE, model)
                else:
                    power_attrs.set_model(RiseFall.FALL, model)

            related_ports: list[Optional[LibertyPort]] = []
            for related_name in (self._get_str(attrs, "related_pin") or "").split():
                related_port = cell.port(related_name)
                if related_port is None:
                    raise LibraryError(f"related_pin '{related_name}' not found", source)
                related_ports.append(related_port)
        except LibraryError:
            power_attrs.delete_contents()
            raise

        contents = power_attrs.transfer()
        return [
            InternalPower(cell, port, related_port, contents)
            for related_port in related_ports or [None]
        ]

    def _build_table(
        self, grp: dict, templates: dict, units: Units, source: str
    ) -> Optional[TableModel]:
        """Builds a power table from its template and values.

        Returns None when the table fails load-time axis validation and its
        axes cannot be mapped onto the power query either.
        """
        attrs = grp["_attributes"]
        template_name = grp["_qualifier"]

        if template_name is None or template_name == "scalar":
            template = {"variables": [], "indices": []}
        elif template_name in templates:
            template = templates[template_name]
        else:
            raise LibraryError(f"table template '{template_name}' not found", source)

        axes = []
        for i, variable in enumerate(template["variables"], start=1):
            index = self._extract_index(attrs.get(f"index_{i}")) or template["indices"][i - 1]
            if not index:
                raise LibraryError(f"{grp['_type']} has no index_{i}", source)
            scale = self._axis_scale(variable, units)
            try:
                axes.append(TableAxis(variable=variable, values=[v * scale for v in index]))
            except ValueError as e:
                raise LibraryError(f"{grp['_type']} index_{i}: {e}", source) from e

        values = [
            units.power_unit.to_si(v)
            for row in self._extract_values(attrs.get("values"))
            for v in row
        ]
        try:
            table = TableModel(
                axis1=axes[0] if len(axes) > 0 else None,
                axis2=axes[1] if len(axes) > 1 else None,
                axis3=axes[2] if len(axes) > 2 else None,
                values=values,
            )
        except ValueError as e:
            raise LibraryError(f"{grp['_type']}: {e}", source) from e

        if not InternalPowerModel.check_axes(table) and not all(
            axis.variable in _QUERY_AXIS_VARIABLES for axis in table.axes
        ):
            variables = [axis.variable.value for axis in table.axes]
            logger.warning(f"{source}: unsupported {grp['_type']} axes {variables}, table ignored")
            return None
        return table

    def _axis_scale(self, variable: TableAxisVariable, units: Units) -> float:
        quantity = variable.quantity
        if quantity == "time":
            return units.time_unit.scale
        if quantity == "capacitance":
            return units.capacitance_unit.scale
        if quantity == "voltage":
            return units.voltage_unit.scale
        return 1.0

    def _unwrap_value(self, val: Any) -> Any:
        """Unwrap Lark Tree/Token objects to plain Python values."""
        if isinstance(val, Tree):
            return self._unwrap_value(val.children[0]) if val.children else None
        if isinstance(val, Token):
            return str(val).strip("\"'")
        return val

    def _extract_index(self, data: Any) -> list[float]:
        """Extract index values from attribute."""
        data = self._unwrap_value(data)
        if data is None:
            return []

        if isinstance(data, list):
            result = []
            for x in data:
                x = self._unwrap_value(x)
                if isinstance(x, (int, float)):
                    result.append(float(x))
                elif isinstance(x, str):
                    result.extend(self._parse_number_list(x))
            return result

        if isinstance(data, str):
            return self._parse_number_list(data)
        if isinstance(data, (int, float)):
            return [float(data)]
        return []

    def _extract_values(self, data: Any) -> list[list[float]]:
        """Extract table values as rows."""
        data = self._unwrap_value(data)
        if data is None:
            return []

        if isinstance(data, (str, int, float)):
            data = [data]

        result = []
        for row in data:
            row = self._unwrap_value(row)
            if isinstance(row, str):
                result.append(self._parse_number_list(row))
            elif isinstance(row, (int, float)):
                result.append([float(row)])
        return result

    def _parse_number_list(self, s: str) -> list[float]:
        """Parse comma-separated numbers from a string."""
        numbers = []
        for p in re.split(r"[,\s]+", s.strip("\"'")):
            if p:
                try:
                    numbers.append(float(p))
                except ValueError as e:
                    raise LibraryError(f"invalid number '{p}' in '{s}'") from e
        return numbers

    def _get_str(self, d: dict, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get string value from dictionary."""
        val = d.get(key)
        # Unwrap single-element lists (from complex_attr like 'technology(cmos)')
        if isinstance(val, list) and len(val) == 1:
            val = val[0]
        val = self._unwrap_value(val)
        if val is None:
            return default
        if isinstance(val, float) and val.is_integer():
            return str(int(val))
        return str(val)

    def _get_float(self, d: dict, key: str, default: Optional[float] = None) -> Optional[float]:
        """Get float value from dictionary."""
        val = self._unwrap_value(d.get(key))
        if val is None:
            return default
        try:
            return float(val)
        except (ValueError, TypeError):
            return default

    def validate(self, data: LibertyLibrary) -> list[str]:
        """Validates the parsed Liberty library.

        Returns:
            A list of warning messages (empty list if valid).
        """
        logger.debug(f"Validating library: {data.name}")
        warnings = []

        if not data.cells:
            warnings.append("Library contains no cells")

        no_power = [name for name, cell in data.cells.items() if not cell.has_internal_power]
        if no_power:
            warnings.append(f"{len(no_power)} cells {no_power} have no internal power")

        if warnings:
            logger.warning(f"Validation warnings for {data.name}: {warnings}")

        return warnings
