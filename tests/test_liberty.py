import gzip
import logging

import pytest

from cellpower.exceptions import CriticalError, LibraryError
from cellpower.models.common import RiseFall
from cellpower.models.internal_power import SharedPowerModel, SplitPowerModels
from cellpower.models.table import TableAxisVariable
from cellpower.parsers.liberty import LibertyParser


def test_parse_library_attributes(power_library):
    lib = power_library

    assert lib.name == "power_lib"
    assert lib.units.time_unit.scale == pytest.approx(1e-9)
    assert lib.units.capacitance_unit.scale == pytest.approx(1e-12)
    assert lib.units.power_unit.suffix == "nW"
    assert lib.nom_voltage == 1.2
    assert lib.scale_factors.k_volt == 0.5
    assert lib.scale_factors.k_temp == 0.0


def test_parse_operating_conditions(power_library):
    lib = power_library

    assert set(lib.operating_conditions) == {"typical", "high_v"}
    assert lib.default_pvt.name == "typical"
    assert lib.operating_conditions["high_v"].voltage == 1.4
    assert lib.scale_factor(None) == pytest.approx(1.0)
    assert lib.scale_factor(lib.operating_conditions["high_v"]) == pytest.approx(1.1)


def test_parse_cells_and_ports(power_library):
    inv = power_library.cell("INV_X1")

    assert inv.area == 1.0
    assert inv.pg_pins == ["VDD", "VSS"]
    assert inv.port("A").capacitance == pytest.approx(2e-15)
    assert inv.port("Y").is_output
    assert inv.port("Y").liberty_cell is inv


def test_split_rise_fall_models(power_library):
    """Verifies that rise_power/fall_power become independent models with SI values."""
    inv = power_library.cell("INV_X1")
    y, a = inv.port("Y"), inv.port("A")

    (arc,) = inv.internal_powers(y)
    assert arc.related_port is a
    assert arc.related_pg_pin == "VDD"
    assert arc.when is None
    assert isinstance(arc.contents.models, SplitPowerModels)
    assert arc.model(RiseFall.RISE) is not arc.model(RiseFall.FALL)

    table = arc.model(RiseFall.RISE).table
    assert table.axis1.variable is TableAxisVariable.INPUT_TRANSITION_TIME
    assert table.axis1.values == pytest.approx([1e-10, 5e-10])
    assert table.axis2.values == pytest.approx([1e-14, 5e-14])

    assert arc.power(RiseFall.RISE, None, 1e-10, 1e-14) == pytest.approx(1e-9)
    assert arc.power(RiseFall.RISE, None, 3e-10, 3e-14) == pytest.approx(2.5e-9)
    assert arc.power(RiseFall.FALL, None, 3e-10, 3e-14) == pytest.approx(1.25e-9)


def test_power_derated_at_corner(power_library):
    inv = power_library.cell("INV_X1")
    (arc,) = inv.internal_powers(inv.port("Y"))
    high_v = power_library.operating_conditions["high_v"]

    assert arc.power(RiseFall.RISE, high_v, 3e-10, 3e-14) == pytest.approx(2.75e-9)


def test_passive_power_without_related_pin(power_library):
    inv = power_library.cell("INV_X1")

    (arc,) = inv.internal_powers(inv.port("A"))
    assert arc.related_port is None
    assert arc.power(RiseFall.RISE, None, 3e-10, 0.0) == pytest.approx(0.2e-9)
    assert arc.power(RiseFall.FALL, None, 1e-10, 0.0) == pytest.approx(0.2e-9)


def test_shared_power_split_over_related_pins(power_library):
    """Verifies that one `power` group yields one arc per related pin sharing one model."""
    nand = power_library.cell("NAND2_X1")
    a, b, y = nand.port("A"), nand.port("B"), nand.port("Y")

    arcs = nand.internal_powers(y)
    assert [arc.related_port for arc in arcs] == [a, b]
    assert arcs[0].contents is arcs[1].contents
    assert isinstance(arcs[0].contents.models, SharedPowerModel)
    assert arcs[0].model(RiseFall.RISE) is arcs[0].model(RiseFall.FALL)
    assert arcs[0].when.to_string() == "A&!B"
    assert nand.internal_powers(y, b) == [arcs[1]]

    assert arcs[1].power(RiseFall.FALL, None, 1e-9, 1e-12) == pytest.approx(2.5e-9)


def test_unsupported_axis_table_dropped(sample_liberty_content, caplog):
    """Verifies load-time handling of tables the power query cannot index.

    A related_pin_transition table passes the load-time axis check and is kept;
    querying it is a critical error. An input_net_transition table fails the
    check and is dropped with a warning.
    """
    with caplog.at_level(logging.WARNING):
        lib = LibertyParser().parse_string(sample_liberty_content)

    dff = lib.cell("DFF_X1")
    (arc,) = dff.internal_powers(dff.port("Q"))
    assert arc.related_port is dff.port("CK")
    assert arc.model(RiseFall.FALL) is None
    assert arc.power(RiseFall.FALL, None, 1e-10, 0.0) == 0.0
    assert "DFF_X1/Q" in caplog.text
    assert "input_net_transition" in caplog.text

    with pytest.raises(CriticalError, match="unsupported table axes"):
        arc.power(RiseFall.RISE, None, 1e-10, 0.0)


def test_index_override_in_table():
    content = """
    library(idx_lib) {
      time_unit : "1ps";
      power_lut_template(t2) {
        variable_1 : input_transition_time;
        index_1 ("1, 2");
      }
      cell(BUF) {
        pin(A) {
          direction : input;
          internal_power() {
            rise_power(t2) { index_1 ("10, 20"); values ("1, 3"); }
          }
        }
      }
    }
    """
    lib = LibertyParser().parse_string(content)
    cell = lib.cell("BUF")
    (arc,) = cell.internal_powers()

    assert arc.model(RiseFall.RISE).table.axis1.values == pytest.approx([1e-11, 2e-11])
    assert arc.power(RiseFall.RISE, None, 1.5e-11, 0.0) == pytest.approx(2e-9)


@pytest.mark.parametrize(
    "body, message",
    [
        ('related_pin : "Z"; rise_power(scalar) { values ("1"); }', "related_pin 'Z' not found"),
        ('rise_power(missing) { values ("1"); }', "table template 'missing' not found"),
        ('rise_power(ok) { values ("1, 2, 3"); }', "rise_power"),
        ('rise_power(ok) { index_1 ("0.5, 0.1"); values ("1, 2"); }', "index_1"),
        ('when : "A &"; rise_power(scalar) { values ("1"); }', "invalid function expression"),
        ('rise_power(scalar) { values ("1, x"); }', "invalid number"),
    ],
)
def test_bad_internal_power_raises(body, message):
    content = f"""
    library(bad_lib) {{
      power_lut_template(ok) {{
        variable_1 : input_transition_time;
        index_1 ("0.1, 0.5");
      }}
      cell(BUF) {{
        pin(A) {{
          direction : input;
          internal_power() {{ {body} }}
        }}
      }}
    }}
    """
    with pytest.raises(LibraryError, match=message):
        LibertyParser().parse_string(content)


def test_unknown_axis_variable_raises():
    content = """
    library(bad_lib) {
      power_lut_template(bad) {
        variable_1 : bogus_variable;
        index_1 ("0.1, 0.5");
      }
    }
    """
    with pytest.raises(LibraryError, match="unknown table axis variable 'bogus_variable'"):
        LibertyParser().parse_string(content)


def test_syntax_error_raises_library_error():
    with pytest.raises(LibraryError, match="syntax error"):
        LibertyParser().parse_string("library(broken) { cell(X) { area : 1.0; }")


def test_non_library_root_rejected():
    with pytest.raises(LibraryError, match="expected a library group"):
        LibertyParser().parse_string("cell(X) { area : 1.0; }")


def test_bad_unit_raises_library_error():
    with pytest.raises(LibraryError, match="time_unit"):
        LibertyParser().parse_string('library(u) { time_unit : "1xs"; }')


def test_parse_file_and_gzip(sample_liberty_file, sample_liberty_content, tmp_path):
    parser = LibertyParser()
    assert parser.parse(sample_liberty_file).name == "power_lib"

    gz_path = tmp_path / "power_lib.lib.gz"
    with gzip.open(gz_path, "wt") as f:
        f.write(sample_liberty_content)

    lib = parser.parse(gz_path)
    assert lib.cell_count == 3


def test_validate_reports_cells_without_power():
    lib = LibertyParser().parse_string("library(v) { cell(FILL) { area : 1.0; } }")

    warnings = LibertyParser().validate(lib)

    assert len(warnings) == 1
    assert "FILL" in warnings[0]


def test_library_release(power_library):
    nand = power_library.cell("NAND2_X1")
    model = nand.internal_powers()[0].model(RiseFall.RISE)

    power_library.release()

    assert model.released
    assert not nand.has_internal_power
    assert power_library.cell("INV_X1").internal_powers() == []


def test_duplicate_rise_power_keeps_last_table():
    content = """
    library(dup_lib) {
      cell(BUF) {
        pin(A) {
          direction : input;
          internal_power() {
            rise_power(scalar) { values ("1.0"); }
            rise_power(scalar) { values ("4.0"); }
          }
        }
      }
    }
    """
    lib = LibertyParser().parse_string(content)
    (arc,) = lib.cell("BUF").internal_powers()

    assert arc.power(RiseFall.RISE, None, 0.0, 0.0) == pytest.approx(4e-9)
    assert arc.model(RiseFall.FALL) is None


def test_unquoted_version_attribute():
    content = """
    library(rev_lib) {
      revision : 1.0.0 ;
      date : "today";
      cell(FILL) { area : 1.0; }
    }
    """
    lib = LibertyParser().parse_string(content)

    assert lib.cell("FILL").area == 1.0
