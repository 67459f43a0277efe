"""ISA: architecture tables, operation tags, errors and fixed-width helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

WORD_BITS = 64
MASK64 = (1 << WORD_BITS) - 1
SIGN64 = 1 << (WORD_BITS - 1)

# initial stack pointer value after reset
STACK_SENTINEL = 0x7FFFFFF0


class Op(IntEnum):
    """Operation tags shared by all architectures."""

    NOP = 0
    RET = 1  # halt

    MOV = 10  # dest = src

    ADD = 20
    SUB = 21
    MUL = 22
    INC = 23  # dest += 1
    DEC = 24  # dest -= 1

    AND = 30
    ORR = 31
    EOR = 32

    LSL = 40
    LSR = 41  # logical (zero-filling) shift; negative amounts shift the other way

    CMP = 50  # flags only


OP_SYMBOLS: dict[Op, str] = {
    Op.ADD: "+",
    Op.SUB: "-",
    Op.MUL: "*",
    Op.AND: "&",
    Op.ORR: "|",
    Op.EOR: "^",
    Op.LSL: "<<",
    Op.LSR: ">>",
}


# --- errors ---
class SimulationError(RuntimeError):
    """Base for errors that abort one run of a program."""

    def __init__(self, detail: str, instruction: str | None = None, line: int | None = None) -> None:
        """Create an error with a message and optional instruction/line context."""
        super().__init__(detail)
        self.detail = detail
        self.instruction = instruction
        self.line = line

    def describe(self) -> str:
        """Return the message with instruction context but without line number."""
        if self.instruction is None:
            return self.detail
        return f"error in '{self.instruction}': {self.detail}"

    def __str__(self) -> str:
        if self.line is None:
            return self.describe()
        return f"line {self.line}: {self.describe()}"


class UnknownOpcodeError(SimulationError):
    """Opcode is not part of the active architecture."""


class ArityError(SimulationError):
    """Instruction has fewer operands than its opcode needs."""


class UnknownRegisterError(SimulationError):
    """Register name is not part of the active architecture."""


class MalformedImmediateError(SimulationError):
    """Literal is neither decimal nor 0x-hex, or does not fit 64 bits."""


# --- fixed-width helpers ---
def to_u64(x: int) -> int:
    """Return the unsigned 64-bit pattern of x."""
    return int(x) & MASK64


def to_s64(x: int) -> int:
    """Wrap x into the signed 64-bit range."""
    v = int(x) & MASK64
    return v - (1 << WORD_BITS) if v & SIGN64 else v


def add_carry(a: int, b: int) -> bool:
    """Carry out of bit 63 when a and b are added as unsigned 64-bit values."""
    return to_u64(a) + to_u64(b) > MASK64


def add_overflow(a: int, b: int, result: int) -> bool:
    """Signed overflow: operands share a sign that the result does not."""
    sa = to_s64(a) < 0
    sb = to_s64(b) < 0
    sr = to_s64(result) < 0
    return sa == sb and sa != sr


def logical_shift(x: int, amount: int) -> int:
    """Shift the unsigned 64-bit pattern of x left by amount, or right when amount is negative.

    Bits pushed out of the window are lost, so any |amount| >= 64 gives 0.
    """
    if amount >= WORD_BITS or amount <= -WORD_BITS:
        return 0
    u = to_u64(x)
    return to_s64(u << amount if amount >= 0 else u >> -amount)


def parity_even(x: int) -> bool:
    """True when the low byte of x has an even number of set bits."""
    return bin(x & 0xFF).count("1") % 2 == 0


def format_hex(x: int) -> str:
    """Short uppercase hex of the 64-bit pattern, e.g. 0x2A."""
    return f"0x{to_u64(x):X}"


def format_hex64(x: int) -> str:
    """Zero-padded 16-digit uppercase hex of the 64-bit pattern."""
    return f"0x{to_u64(x):016X}"


# --- architecture descriptions ---
@dataclass(frozen=True)
class OpInfo:
    """Opcode table entry: operation tag, minimum token count, flag behaviour."""

    op: Op
    arity: int
    flags: str | None = None  # None, "arith" or "logic"


@dataclass(frozen=True)
class ArchSpec:
    """Everything the generic engine needs to know about one instruction set."""

    name: str
    registers: tuple[str, ...]
    flags: tuple[str, ...]
    opcodes: dict[str, OpInfo]
    comment_markers: tuple[str, ...]
    stack_register: str
    zero_flag: str
    negative_flag: str
    carry_flag: str
    overflow_flag: str
    zero_registers: frozenset[str] = frozenset()
    link_register: str | None = None
    parity_flag: str | None = None
    immediate_prefix: str | None = None
    # destination doubles as first source (ADD RAX, RBX)
    two_operand: bool = False

    def lookup(self, opcode: str) -> OpInfo | None:
        """Return the table entry for an uppercased opcode, or None."""
        return self.opcodes.get(opcode)


ARM64 = ArchSpec(
    name="arm64",
    registers=tuple(f"X{i}" for i in range(31)) + ("SP", "LR"),
    flags=("N", "Z", "C", "V"),
    opcodes={
        "MOV": OpInfo(Op.MOV, 3),
        "MOVZ": OpInfo(Op.MOV, 3),
        "ADD": OpInfo(Op.ADD, 4),
        "SUB": OpInfo(Op.SUB, 4, "arith"),
        "MUL": OpInfo(Op.MUL, 4),
        "AND": OpInfo(Op.AND, 4, "logic"),
        "ORR": OpInfo(Op.ORR, 4, "logic"),
        "EOR": OpInfo(Op.EOR, 4, "logic"),
        "LSL": OpInfo(Op.LSL, 4),
        "LSR": OpInfo(Op.LSR, 4),
        "CMP": OpInfo(Op.CMP, 3, "arith"),
        "NOP": OpInfo(Op.NOP, 1),
        "RET": OpInfo(Op.RET, 1),
    },
    comment_markers=("//", ";"),
    stack_register="SP",
    zero_flag="Z",
    negative_flag="N",
    carry_flag="C",
    overflow_flag="V",
    zero_registers=frozenset({"XZR", "WZR"}),
    link_register="LR",
    immediate_prefix="#",
)

X86 = ArchSpec(
    name="x86",
    registers=(
        "RAX",
        "RBX",
        "RCX",
        "RDX",
        "RSI",
        "RDI",
        "RBP",
        "RSP",
        *(f"R{i}" for i in range(8, 16)),
    ),
    flags=("CF", "PF", "ZF", "SF", "OF"),
    opcodes={
        "MOV": OpInfo(Op.MOV, 3),
        "ADD": OpInfo(Op.ADD, 3, "arith"),
        "SUB": OpInfo(Op.SUB, 3, "arith"),
        "MUL": OpInfo(Op.MUL, 3),
        "IMUL": OpInfo(Op.MUL, 3),
        "AND": OpInfo(Op.AND, 3, "logic"),
        "OR": OpInfo(Op.ORR, 3, "logic"),
        "XOR": OpInfo(Op.EOR, 3, "logic"),
        "SHL": OpInfo(Op.LSL, 3),
        "SHR": OpInfo(Op.LSR, 3),
        "CMP": OpInfo(Op.CMP, 3, "arith"),
        "INC": OpInfo(Op.INC, 2, "arith"),
        "DEC": OpInfo(Op.DEC, 2, "arith"),
        "NOP": OpInfo(Op.NOP, 1),
        "RET": OpInfo(Op.RET, 1),
    },
    comment_markers=(";", "//"),
    stack_register="RSP",
    zero_flag="ZF",
    negative_flag="SF",
    carry_flag="CF",
    overflow_flag="OF",
    parity_flag="PF",
    two_operand=True,
)

ARCHITECTURES: dict[str, ArchSpec] = {ARM64.name: ARM64, X86.name: X86}

_ALIASES = {
    "aarch64": "arm64",
    "arm": "arm64",
    "x86-64": "x86",
    "x86_64": "x86",
    "x64": "x86",
    "amd64": "x86",
}


def get_arch(name: str | ArchSpec) -> ArchSpec:
    """Resolve an architecture name (or alias) to its ArchSpec.

    Raises ValueError for unknown names.
    """
    if isinstance(name, ArchSpec):
        return name
    key = str(name).strip().lower()
    key = _ALIASES.get(key, key)
    if key not in ARCHITECTURES:
        known = ", ".join(sorted(ARCHITECTURES))
        msg = f"unknown architecture '{name}' (known: {known})"
        raise ValueError(msg)
    return ARCHITECTURES[key]
