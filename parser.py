"""Module: split assembly source into lines and lines into opcode + operands.

This module contains:
- strip_comment(line, markers) -> line without inline comment
- tokenize(line) -> list of tokens
- parse_line(line, arch) -> ParsedLine or None (skip)
- parse_immediate(text, prefix) -> int
- parse_source(source, arch) -> list of (line_no, ParsedLine)
"""

from __future__ import annotations

# ruff: noqa: A005
import argparse
import re
from dataclasses import dataclass, field
from pathlib import Path

from isa import ArchSpec, MalformedImmediateError, get_arch, to_s64

TOKEN_SPLIT_RE = re.compile(r"[\s,]+")

_IMM_RE = re.compile(
    r"""
    ^([-+]?)                        # optional sign
    (0[xX][0-9a-fA-F]+|             # hex literal
     [0-9]+)$                       # decimal literal
    """,
    re.VERBOSE,
)

IMM_MIN = -(1 << 63)
IMM_MAX = (1 << 64) - 1
DEC_DIGITS_MAX = len(str(IMM_MAX))
HEX_DIGITS_MAX = 16


@dataclass
class ParsedLine:
    """One instruction: uppercased opcode, raw operand strings and source text."""

    opcode: str
    operands: list[str] = field(default_factory=list)
    text: str = ""

    @property
    def tokens(self) -> int:
        """Token count including the opcode (what arity is checked against)."""
        return 1 + len(self.operands)


def strip_comment(line: str, markers: tuple[str, ...]) -> str:
    """Cut the line at the earliest comment marker."""
    cut = len(line)
    for m in markers:
        pos = line.find(m)
        if pos != -1 and pos < cut:
            cut = pos
    return line[:cut]


def tokenize(line: str) -> list[str]:
    """Split on runs of whitespace and commas, dropping empty pieces."""
    return [tok for tok in TOKEN_SPLIT_RE.split(line) if tok]


def parse_line(line: str, arch: ArchSpec) -> ParsedLine | None:
    """Parse one raw source line.

    Returns None for lines that carry no instruction (blank, comment-only).
    Operands are neither validated nor resolved here.
    """
    text = strip_comment(line, arch.comment_markers).strip()
    if not text:
        return None
    tokens = tokenize(text)
    if not tokens:
        return None
    return ParsedLine(opcode=tokens[0].upper(), operands=tokens[1:], text=text)


def parse_immediate(text: str, prefix: str | None = None) -> int:
    """Parse a decimal or 0x-hex literal into the signed 64-bit register domain.

    If `prefix` is given (e.g. "#") and present, it is removed first.
    Raises MalformedImmediateError on bad syntax or values that do not fit 64 bits.
    """
    s = text.strip()
    if prefix and s.startswith(prefix):
        s = s[len(prefix) :].strip()
    m = _IMM_RE.match(s)
    if m is None:
        err = f"malformed immediate: {text}"
        raise MalformedImmediateError(err)
    sign, digits = m.group(1), m.group(2)
    is_hex = digits[:2].lower() == "0x"
    significant = (digits[2:] if is_hex else digits).lstrip("0")
    # longer literals cannot fit; refuse before int() sees them
    if len(significant) > (HEX_DIGITS_MAX if is_hex else DEC_DIGITS_MAX):
        err = f"immediate out of 64-bit range: {text}"
        raise MalformedImmediateError(err)
    value = int(significant or "0", 16 if is_hex else 10)
    if sign == "-":
        value = -value
    if value < IMM_MIN or value > IMM_MAX:
        err = f"immediate out of 64-bit range: {text}"
        raise MalformedImmediateError(err)
    return to_s64(value)


def split_lines(source: str) -> list[str]:
    """Split source text into raw lines (a trailing CR is kept; parse_line strips it)."""
    return source.split("\n")


def parse_source(source: str, arch: ArchSpec) -> list[tuple[int, ParsedLine]]:
    """Parse a whole program, returning (1-based line number, ParsedLine) for instruction lines."""
    result: list[tuple[int, ParsedLine]] = []
    for idx, raw in enumerate(split_lines(source), start=1):
        parsed = parse_line(raw, arch)
        if parsed is not None:
            result.append((idx, parsed))
    return result


def format_listing(source: str, arch: ArchSpec) -> str:
    """Produce a human-readable listing: line number, opcode, operands."""
    lines: list[str] = []
    for idx, parsed in parse_source(source, arch):
        known = "" if arch.lookup(parsed.opcode) is not None else "   <unknown opcode>"
        ops = ", ".join(parsed.operands)
        lines.append(f"{idx:4d} - {parsed.opcode:<5} {ops}{known}".rstrip())
    return "\n".join(lines)


# --- CLI ---
if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Show how assembly source is split into instructions")
    ap.add_argument("input", help="source file (e.g. program.s)")
    ap.add_argument("--arch", default="arm64", help="architecture: arm64 or x86 (default: arm64)")
    args = ap.parse_args()

    src = Path(args.input).read_text(encoding="utf-8")
    print(format_listing(src, get_arch(args.arch)))
