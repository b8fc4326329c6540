"""Pytest configuration and fixtures.

Provides shared fixtures for Liberty content/files and small hand-built
library objects used across multiple tests.
"""

import tempfile
import textwrap
from pathlib import Path

import pytest
from typer.testing import CliRunner

from cellpower.models.liberty import LibertyCell, LibertyLibrary, LibertyPort
from cellpower.parsers.liberty import LibertyParser


@pytest.fixture
def sample_liberty_content():
    """Provides a sample Liberty file content as a string.

    Contains:
    - Library header (units, nominal corner, internal power k-factors).
    - Operating conditions (typical, high_v) with typical as default.
    - Power templates: 2D (slew x load), 1D (slew), 1D related_pin_transition
      and 1D input_net_transition.
    - Cells:
        - INV_X1: Split rise/fall power on Y (related A), passive power on A.
        - NAND2_X1: One shared `power` table for related pins A and B.
        - DFF_X1: Rise table on a related_pin_transition axis, fall table on
          an input_net_transition axis (dropped at load time).
    """
    return textwrap.dedent("""
    /* Internal power test library */
    library(power_lib) {
      delay_model : table_lookup;
      time_unit : "1ns";
      voltage_unit : "1V";
      leakage_power_unit : "1nW";
      capacitive_load_unit (1, pf);

      nom_process : 1.0;
      nom_voltage : 1.2;
      nom_temperature : 25.0;
      k_volt_internal_power : 0.5;
      default_operating_conditions : typical;

      operating_conditions(typical) {
        process : 1.0;
        voltage : 1.2;
        temperature : 25.0;
      }
      operating_conditions(high_v) {
        process : 1.0;
        voltage : 1.4;
        temperature : 25.0;
      }

      power_lut_template(power_2x2) {
        variable_1 : input_transition_time;
        variable_2 : total_output_net_capacitance;
        index_1 ("0.1, 0.5");
        index_2 ("0.01, 0.05");
      }
      power_lut_template(passive_2) {
        variable_1 : input_transition_time;
        index_1 ("0.1, 0.5");
      }
      power_lut_template(related_2) {
        variable_1 : related_pin_transition;
        index_1 ("0.1, 0.5");
      }
      power_lut_template(net_2) {
        variable_1 : input_net_transition;
        index_1 ("0.1, 0.5");
      }

      cell(INV_X1) {
        area : 1.0;
        pg_pin(VDD) { pg_type : primary_power; }
        pg_pin(VSS) { pg_type : primary_ground; }
        pin(A) {
          direction : input;
          capacitance : 0.002;
          internal_power() {
            related_pg_pin : VDD;
            rise_power(passive_2) { values ("0.1, 0.3"); }
            fall_power(passive_2) { values ("0.2, 0.4"); }
          }
        }
        pin(Y) {
          direction : output;
          function : "!A";
          internal_power() {
            related_pin : "A";
            related_pg_pin : VDD;
            rise_power(power_2x2) {
              values ("1.0, 2.0", \\
                      "3.0, 4.0");
            }
            fall_power(power_2x2) {
              values ("0.5, 1.0", \\
                      "1.5, 2.0");
            }
          }
        }
      }

      cell(NAND2_X1) {
        area : 1.5;
        pin(A) { direction : input; capacitance : 0.002; }
        pin(B) { direction : input; capacitance : 0.002; }
        pin(Y) {
          direction : output;
          function : "!(A & B)";
          internal_power() {
            related_pin : "A B";
            when : "A & !B";
            power(scalar) { values ("2.5"); }
          }
        }
      }

      cell(DFF_X1) {
        area : 4.0;
        pin(D) { direction : input; }
        pin(CK) { direction : input; clock : true; }
        pin(Q) {
          direction : output;
          internal_power() {
            related_pin : "CK";
            rise_power(related_2) { values ("1.0, 2.0"); }
            fall_power(net_2) { values ("1.0, 2.0"); }
          }
        }
      }
    }
    """)


@pytest.fixture
def sample_liberty_file(sample_liberty_content):
    """Creates a temporary .lib file populated with sample content.

    Yields:
        Path to the temporary file. Auto-deletes on cleanup.
    """
    with tempfile.NamedTemporaryFile(mode="w", suffix=".lib", delete=False) as f:
        f.write(sample_liberty_content)
        path = Path(f.name)
    yield path
    path.unlink()


@pytest.fixture
def power_library(sample_liberty_content):
    """The sample library parsed with LibertyParser."""
    return LibertyParser().parse_string(sample_liberty_content)


@pytest.fixture
def bare_cell():
    """A cell with ports A and Y in a library with default units."""
    library = LibertyLibrary(name="bare_lib")
    cell = library.add_cell(LibertyCell(name="BARE"))
    cell.add_port(LibertyPort(name="A", direction="input"))
    cell.add_port(LibertyPort(name="Y", direction="output"))
    return cell


@pytest.fixture
def runner():
    return CliRunner()
