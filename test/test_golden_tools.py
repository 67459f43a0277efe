"""Tests for the golden record generator."""

from __future__ import annotations

from pathlib import Path

import generate_golden_fields
import pytest
import yaml


def test_generate_fills_expectations(tmp_path: Path) -> None:
    p = tmp_path / "rec.yaml"
    p.write_text("arch: x86\nin_source: |\n  MOV RAX, 3\n  DEC RAX\n", encoding="utf-8")
    generate_golden_fields.main(str(p))
    doc = yaml.safe_load(p.read_text(encoding="utf-8"))
    expect = doc["expect"]
    assert expect["success"] is True
    assert "error" not in expect
    assert expect["registers"] == {"RAX": 2}
    assert expect["flags"]["ZF"] is False
    assert "DEC RAX <- 3 - 1 = 2 (0x2)" in expect["out_stdout"]


def test_generate_records_failure(tmp_path: Path) -> None:
    p = tmp_path / "rec.yaml"
    p.write_text("in_source: \"MOV X0, #1\\nBOGUS\"\nexpect:\n  success: true\n", encoding="utf-8")
    generate_golden_fields.main(str(p))
    expect = yaml.safe_load(p.read_text(encoding="utf-8"))["expect"]
    assert expect["success"] is False
    assert expect["error"] == "line 2: error in 'BOGUS': unknown instruction: BOGUS"


def test_generate_without_source(tmp_path: Path) -> None:
    p = tmp_path / "rec.yaml"
    p.write_text("arch: arm64\n", encoding="utf-8")
    with pytest.raises(SystemExit):
        generate_golden_fields.main(str(p))
