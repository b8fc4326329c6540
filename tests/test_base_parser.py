import gzip

from cellpower.parsers.base import BaseParser


class DummyParser(BaseParser):
    def parse(self, path):
        return self.parse_string(self._read_file(path), path.name)

    def parse_string(self, content, name="unknown"):
        return content


def test_read_file_plain(tmp_path):
    parser = DummyParser()
    f = tmp_path / "cells.lib"
    f.write_text("library(x) { }", encoding="utf-8")

    assert parser._read_file(f) == "library(x) { }"


def test_read_file_gzip(tmp_path):
    parser = DummyParser()
    f = tmp_path / "cells.lib.gz"
    with gzip.open(f, "wt", encoding="utf-8") as gf:
        gf.write("library(gz) { }")

    assert parser.parse(f) == "library(gz) { }"


def test_read_file_replaces_bad_bytes(tmp_path):
    parser = DummyParser()
    f = tmp_path / "latin.lib"
    f.write_bytes(b"cell(\xff)")

    assert parser._read_file(f, errors="replace") == "cell(\ufffd)"


def test_default_validate_has_no_warnings():
    assert DummyParser().validate("anything") == []
