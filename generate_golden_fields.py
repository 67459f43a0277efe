#!/usr/bin/env python3
"""
Fill in expectations (out_stdout, success, error, registers, flags) of a golden YAML record.
Usage: python generate_golden_fields.py path/to/golden.yaml
"""

import os
import sys

import yaml

from processor import run_source


def modified_registers(sim):
    """Snapshot entries of registers written by the program, as plain ints."""
    state = sim.get_register_state()
    return {name: int(st["value"]) for name, st in state.items() if st["modified"]}


def main(path):
    if not os.path.exists(path):
        print("File not found:", path)
        sys.exit(2)

    with open(path, "r", encoding="utf-8") as f:
        doc = yaml.safe_load(f) or {}

    src = doc.get("in_source")
    if src is None:
        print("No 'in_source' found in YAML — nothing to run")
        sys.exit(2)

    cfg = dict(doc.get("in_config") or {})
    if "arch" in doc:
        cfg["arch"] = doc["arch"]

    result, sim = run_source(src, cfg)

    # prefer expect, then out, else create expect
    if "expect" in doc:
        target = doc["expect"]
    elif "out" in doc:
        target = doc["out"]
    else:
        doc["expect"] = {}
        target = doc["expect"]

    target["success"] = result.success
    if result.error is not None:
        target["error"] = result.error
    else:
        target.pop("error", None)
    target["out_stdout"] = result.output + "\n"
    target["registers"] = modified_registers(sim)
    target["flags"] = sim.get_flags_state()

    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(doc, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    print(f"Updated {path}: success={result.success}, {len(target['registers'])} register(s).")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: generate_golden_fields.py path/to/golden.yaml")
        sys.exit(1)
    main(sys.argv[1])
