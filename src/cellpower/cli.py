"""Cell-Power CLI - Command Line Interface.

This module provides the command-line interface for the Cell-Power framework,
allowing users to load Liberty libraries, list the internal power arcs of a
cell and query the internal power of a pin transition.

The CLI is built using Typer and uses Rich for formatted output.

Typical usage example:

  $ cellpower info my_lib.lib
  $ cellpower power my_lib.lib INV_X1 Y --related A --rf rise --slew 0.1 --load 0.01
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .exceptions import CriticalError, LibraryError
from .log_utils import setup_logging
from .models.common import RiseFall
from .models.liberty import LibertyCell, LibertyLibrary

app = typer.Typer(
    name="cellpower",
    help="Cell-Power: internal power arcs of Liberty cell libraries",
    no_args_is_help=True,
)
console = Console()

logger = logging.getLogger(__name__)


@app.callback(invoke_without_command=False)
def main(
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress debug logs (show warnings/errors only)"
    ),
):
    """Cell-Power: internal power arcs of Liberty cell libraries."""
    setup_logging(quiet=quiet)


def load_library(path: Path) -> LibertyLibrary:
    """Parses a Liberty file, exiting with status 1 on any error.

    Args:
        path: Path to the Liberty file.

    Returns:
        The parsed library.

    Raises:
        typer.Exit: If the file is missing or cannot be read as Liberty.
    """
    if not path.exists():
        console.print(f"[red]Error:[/red] File not found: {escape(str(path))}")
        raise typer.Exit(1)

    from .parsers.liberty import LibertyParser

    try:
        return LibertyParser().parse(path)
    except LibraryError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)


def find_cell(library: LibertyLibrary, name: str) -> LibertyCell:
    cell = library.cell(name)
    if cell is None:
        console.print(f"[red]Error:[/red] Cell not found: {escape(name)}")
        raise typer.Exit(1)
    return cell


@app.command()
def info(
    lib_file: Path = typer.Argument(..., help="Path to Liberty file"),
):
    """Displays a summary of a Liberty library.

    Shows the declared units, the nominal corner and internal power k-factors,
    then one row per cell with its port and internal power arc counts.

    Args:
        lib_file: Path to the Liberty (.lib) file.

    Raises:
        typer.Exit: If the file is not found or cannot be parsed.
    """
    from .parsers.liberty import LibertyParser

    lib = load_library(lib_file)
    units = lib.units
    k = lib.scale_factors

    console.print(
        Panel.fit(
            f"[bold green]Library:[/] {escape(lib.name)}\n"
            f"[bold]Cells:[/] {lib.cell_count}\n"
            f"[bold]Units:[/] time {units.time_unit}, capacitance {units.capacitance_unit}, "
            f"voltage {units.voltage_unit}, power {units.power_unit}\n"
            f"[bold]Nominal:[/] process {lib.nom_process or 'N/A'}, "
            f"voltage {lib.nom_voltage or 'N/A'}, temperature {lib.nom_temperature or 'N/A'}\n"
            f"[bold]Default corner:[/] {escape(lib.default_operating_conditions or 'N/A')}\n"
            f"[bold]Power k-factors:[/] process {k.k_process}, volt {k.k_volt}, temp {k.k_temp}",
            title="Liberty Summary",
        )
    )

    table = Table(title="Cells")
    table.add_column("Cell")
    table.add_column("Ports", justify="right")
    table.add_column("Power Arcs", justify="right")
    for name, cell in sorted(lib.cells.items()):
        table.add_row(escape(name), str(len(cell.ports)), str(len(cell.internal_powers())))
    console.print(table)

    for w in LibertyParser().validate(lib):
        console.print(f"[yellow]Warning:[/yellow] {escape(w)}")


@app.command()
def arcs(
    lib_file: Path = typer.Argument(..., help="Path to Liberty file"),
    cell_name: str = typer.Argument(..., help="Cell name"),
):
    """Lists the internal power arcs of a cell.

    Args:
        lib_file: Path to the Liberty (.lib) file.
        cell_name: Name of the cell.

    Raises:
        typer.Exit: If the file or cell is not found.
    """
    lib = load_library(lib_file)
    cell = find_cell(lib, cell_name)

    table = Table(title=f"Internal Power: {escape(cell.name)}")
    table.add_column("Pin")
    table.add_column("Related")
    table.add_column("When")
    table.add_column("PG Pin")
    for rf in RiseFall.range():
        table.add_column(f"{rf.value.capitalize()} Order", justify="right")

    for power in cell.internal_powers():
        orders = []
        for rf in RiseFall.range():
            model = power.model(rf)
            orders.append(str(model.table.order) if model and model.table else "-")
        table.add_row(
            escape(power.port.name),
            escape(power.related_port.name) if power.related_port else "-",
            escape(power.when.to_string()) if power.when else "-",
            escape(power.related_pg_pin or "-"),
            *orders,
        )
    console.print(table)


@app.command()
def power(
    lib_file: Path = typer.Argument(..., help="Path to Liberty file"),
    cell_name: str = typer.Argument(..., help="Cell name"),
    pin: str = typer.Argument(..., help="Pin the power is characterized on"),
    related: Optional[str] = typer.Option(None, "--related", "-r", help="Related (switching) pin"),
    rf: RiseFall = typer.Option(RiseFall.RISE, "--rf", help="Output edge sense"),
    slew: float = typer.Option(0.0, "--slew", "-s", help="Input slew in library time units"),
    load: float = typer.Option(0.0, "--load", "-l", help="Load in library capacitance units"),
    corner: Optional[str] = typer.Option(None, "--corner", "-c", help="Operating conditions name"),
    digits: int = typer.Option(3, "--digits", "-d", help="Decimals in the output"),
    report: bool = typer.Option(False, "--report", help="Show how each value is looked up"),
):
    """Computes the internal power of a pin transition.

    Evaluates every internal power arc of the pin (optionally restricted to one
    related pin) for the given edge sense, input slew and output load.

    Args:
        lib_file: Path to the Liberty (.lib) file.
        cell_name: Name of the cell.
        pin: Name of the pin carrying the internal power groups.
        related: Optional. Related pin to select arcs by.
        rf: Output edge sense (rise or fall).
        slew: Input transition time, in the library time unit.
        load: Output load capacitance, in the library capacitance unit.
        corner: Optional. Operating conditions to derate for; the library
            default is used when omitted.
        digits: Number of decimals.
        report: If True, prints the table lookup report of each arc.

    Raises:
        typer.Exit: With status 1 for missing inputs, 2 when the library holds
            a table the power query cannot interpret.
    """
    lib = load_library(lib_file)
    cell = find_cell(lib, cell_name)
    units = lib.units

    port = cell.port(pin)
    if port is None:
        console.print(f"[red]Error:[/red] Pin not found: {escape(pin)}")
        raise typer.Exit(1)

    related_port = None
    if related is not None:
        related_port = cell.port(related)
        if related_port is None:
            console.print(f"[red]Error:[/red] Pin not found: {escape(related)}")
            raise typer.Exit(1)

    pvt = None
    if corner is not None:
        pvt = lib.operating_conditions.get(corner)
        if pvt is None:
            console.print(f"[red]Error:[/red] Operating conditions not found: {escape(corner)}")
            raise typer.Exit(1)

    powers = cell.internal_powers(port, related_port)
    if not powers:
        console.print(f"[yellow]No internal power arcs on {escape(cell.name)}/{escape(pin)}[/yellow]")
        raise typer.Exit(1)

    in_slew = units.time_unit.to_si(slew)
    load_cap = units.capacitance_unit.to_si(load)
    logger.debug(f"Power query {cell.name}/{pin} {rf.value} slew={in_slew:g}s load={load_cap:g}F")

    table = Table(title=f"Internal Power ({rf.value}): {escape(cell.name)}/{escape(pin)}")
    table.add_column("Related")
    table.add_column("When")
    table.add_column(f"Power ({units.power_unit})", justify="right")

    reports = []
    try:
        for arc in powers:
            value = arc.power(rf, pvt, in_slew, load_cap)
            table.add_row(
                escape(arc.related_port.name) if arc.related_port else "-",
                escape(arc.when.to_string()) if arc.when else "-",
                units.power_unit.as_string(value, digits),
            )
            if report:
                text = arc.report_power(rf, pvt, in_slew, load_cap, units, digits)
                if text:
                    reports.append(text)
    except CriticalError as e:
        console.print(f"[red]Critical:[/red] {escape(e.reason)}")
        raise typer.Exit(2)

    console.print(table)
    for text in reports:
        console.print(Panel(escape(text.rstrip()), title="Power Report"))


if __name__ == "__main__":
    app()
