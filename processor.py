"""Processor (RegisterFile + FlagRegister + ControlUnit), Simulator and CLI wrapper.

Provides line-by-line program execution, the execution trace, register/flag
snapshots for front-ends and logging initialization.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from config import ConfigError, load_config
from examples import example_names, get_example
from isa import (
    OP_SYMBOLS,
    STACK_SENTINEL,
    ArchSpec,
    ArityError,
    Op,
    OpInfo,
    SimulationError,
    UnknownOpcodeError,
    UnknownRegisterError,
    add_carry,
    add_overflow,
    format_hex,
    format_hex64,
    get_arch,
    logical_shift,
    parity_even,
    to_s64,
)
from parser import ParsedLine, parse_immediate, parse_line, split_lines

LOGFILE = "simulator.log"

TRACE_START = "=== Program start ==="
TRACE_SUCCESS = "=== Program finished successfully ==="
HALT_MESSAGE = "Program halted (RET)"


def init_logging(logfile: str = LOGFILE, debug: bool = False, console: bool = False) -> None:
    """Configure root logger to write to `logfile`.

    If debug=True set DEBUG level. If console=True also echo logs to stdout.

    In debug mode the file format carries no timestamp, so entries look like:
        DEBUG root:processor.py:312 LINE:    3 OP: ADD   FLAGS: N=0 Z=0 C=0 V=0 ...
    """
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    lvl = logging.DEBUG if debug else logging.CRITICAL
    root.setLevel(lvl)

    if debug:
        file_fmt = "%(levelname)s %(name)s:%(filename)s:%(lineno)d %(message)s"
    else:
        file_fmt = "%(levelname)-5s %(message)s"

    # First record unindented, every later one indented by four spaces.
    class _IndentOnceFormatter(logging.Formatter):
        def __init__(self, fmt: str | None = None):
            super().__init__(fmt)
            self._seen_first = False

        def format(self, record: logging.LogRecord) -> str:
            s = super().format(record)
            if not self._seen_first:
                self._seen_first = True
                return s
            return "    " + s

    fh = logging.FileHandler(logfile, mode="w", encoding="utf-8")
    fh.setLevel(lvl)
    if debug:
        fh.setFormatter(_IndentOnceFormatter(file_fmt))
    else:
        fh.setFormatter(logging.Formatter(file_fmt))
    root.addHandler(fh)

    if debug and console:
        ch = logging.StreamHandler(sys.stdout)
        ch.setLevel(lvl)
        ch.setFormatter(logging.Formatter("%(levelname)5s %(message)s"))
        root.addHandler(ch)


@dataclass
class ExecutionResult:
    """Outcome of one execute() call."""

    success: bool
    output: str
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping; `error` only present on failure."""
        d: dict[str, Any] = {"success": self.success, "output": self.output}
        if self.error is not None:
            d["error"] = self.error
        return d


class RegisterFile:
    """Named 64-bit registers of one architecture plus the modified-set."""

    arch: ArchSpec
    stack_pointer: int
    values: dict[str, int]
    modified: set[str]

    def __init__(self, arch: ArchSpec, stack_pointer: int = STACK_SENTINEL) -> None:
        """Create the register file and put it into the reset state."""
        self.arch = arch
        self.stack_pointer = int(stack_pointer)
        self.values = {}
        self.modified = set()
        self.reset()

    def reset(self) -> None:
        """All registers zero, stack pointer at its sentinel, nothing modified."""
        self.values = {name: 0 for name in self.arch.registers}
        self.values[self.arch.stack_register] = to_s64(self.stack_pointer)
        self.modified = set()

    def is_register(self, name: str) -> bool:
        """Case-insensitive membership test (zero registers included)."""
        reg = name.strip().upper()
        return reg in self.values or reg in self.arch.zero_registers

    def canonical(self, name: str) -> str:
        """Uppercased register name, or UnknownRegisterError."""
        reg = name.strip().upper()
        if reg in self.values or reg in self.arch.zero_registers:
            return reg
        err = f"unknown register: {reg}"
        raise UnknownRegisterError(err)

    def read(self, name: str) -> int:
        reg = self.canonical(name)
        if reg in self.arch.zero_registers:
            return 0
        return self.values[reg]

    def write(self, name: str, value: int) -> None:
        reg = self.canonical(name)
        if reg in self.arch.zero_registers:
            logging.debug("write of %d to zero register %s discarded", value, reg)
            return
        self.values[reg] = to_s64(value)
        self.modified.add(reg)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Register name -> {value, hex, modified}; zero registers are never listed."""
        return {
            name: {
                "value": str(v),
                "hex": format_hex64(v),
                "modified": name in self.modified,
            }
            for name, v in self.values.items()
        }

    def compact(self) -> str:
        """Modified registers as 'X0=42 X1=8' (for step logs)."""
        return " ".join(f"{n}={self.values[n]}" for n in self.arch.registers if n in self.modified)


class FlagRegister:
    """Fixed set of named condition flags."""

    arch: ArchSpec
    values: dict[str, bool]

    def __init__(self, arch: ArchSpec) -> None:
        """Create the flag set with every flag cleared."""
        self.arch = arch
        self.values = {}
        self.reset()

    def reset(self) -> None:
        self.values = {name: False for name in self.arch.flags}

    def set(self, name: str, value: bool) -> None:
        self.values[name] = bool(value)

    def get(self, name: str) -> bool:
        return self.values[name]

    def snapshot(self) -> dict[str, bool]:
        return dict(self.values)

    def compact(self) -> str:
        return " ".join(f"{n}={int(v)}" for n, v in self.values.items())


class ControlUnit:
    """Control unit: validates, resolves and executes one parsed instruction."""

    regs: RegisterFile
    flags: FlagRegister
    trace: list[str]
    arch: ArchSpec

    def __init__(self, regs: RegisterFile, flags: FlagRegister, trace: list[str]) -> None:
        """Bind the control unit to shared register, flag and trace state."""
        self.regs = regs
        self.flags = flags
        self.trace = trace
        self.arch = regs.arch
        self.handlers: dict[Op, Callable[[ParsedLine, OpInfo], bool]] = {
            Op.NOP: self._exec_nop,
            Op.RET: self._exec_ret,
            Op.MOV: self._exec_mov,
            Op.ADD: self._exec_binary,
            Op.SUB: self._exec_binary,
            Op.MUL: self._exec_binary,
            Op.AND: self._exec_binary,
            Op.ORR: self._exec_binary,
            Op.EOR: self._exec_binary,
            Op.LSL: self._exec_binary,
            Op.LSR: self._exec_binary,
            Op.INC: self._exec_step,
            Op.DEC: self._exec_step,
            Op.CMP: self._exec_cmp,
        }

    def exec(self, parsed: ParsedLine) -> bool:
        """Execute a single instruction. Return True when the program must halt.

        SimulationErrors leave with the instruction text attached.
        """
        try:
            info = self.arch.lookup(parsed.opcode)
            if info is None:
                err = f"unknown instruction: {parsed.opcode}"
                raise UnknownOpcodeError(err)
            if parsed.tokens < info.arity:
                need = info.arity - 1
                err = f"{parsed.opcode} needs {need} operand(s), got {len(parsed.operands)}"
                raise ArityError(err)
            return self.handlers[info.op](parsed, info)
        except SimulationError as e:
            if e.instruction is None:
                e.instruction = parsed.text
            raise

    # --- operand helpers ---
    def _read_source(self, tok: str) -> int:
        """Read a register or an immediate, following the architecture's literal syntax."""
        prefix = self.arch.immediate_prefix
        if prefix is not None:
            if tok.startswith(prefix):
                return parse_immediate(tok, prefix)
            return self.regs.read(tok)
        # no literal marker: anything that is not a register must be a literal
        if self.regs.is_register(tok):
            return self.regs.read(tok)
        return parse_immediate(tok)

    def _binary_operands(self, parsed: ParsedLine) -> tuple[str, str, str]:
        """Return (dest, first source, second source) tokens."""
        ops = parsed.operands
        if self.arch.two_operand:
            src = ops[2] if len(ops) > 2 else ops[1]
            return ops[0], ops[0], src
        return ops[0], ops[1], ops[2]

    def _update_flags(self, kind: str, result: int, a: int = 0, b: int = 0) -> None:
        """Recompute flags for `result`.

        kind == "logic": zero/negative (and parity) only; carry/overflow keep
        their previous values.
        kind == "arith": also carry/overflow of the addition a + b, where
        subtraction passes the negated second operand as b.
        """
        arch = self.arch
        self.flags.set(arch.zero_flag, result == 0)
        self.flags.set(arch.negative_flag, result < 0)
        if arch.parity_flag is not None:
            self.flags.set(arch.parity_flag, parity_even(result))
        if kind == "arith":
            self.flags.set(arch.carry_flag, add_carry(a, b))
            self.flags.set(arch.overflow_flag, add_overflow(a, b, result))

    @staticmethod
    def _compute(op: Op, a: int, b: int) -> int:
        if op == Op.ADD:
            return to_s64(a + b)
        if op == Op.SUB:
            return to_s64(a - b)
        if op == Op.MUL:
            return to_s64(a * b)
        if op == Op.AND:
            return to_s64(a & b)
        if op == Op.ORR:
            return to_s64(a | b)
        if op == Op.EOR:
            return to_s64(a ^ b)
        if op == Op.LSL:
            return logical_shift(a, b)
        if op == Op.LSR:
            return logical_shift(a, -b)
        err = f"no arithmetic for {op.name}"
        raise ValueError(err)

    # --- handlers (return True to halt) ---
    def _exec_nop(self, parsed: ParsedLine, info: OpInfo) -> bool:
        self.trace.append("NOP")
        return False

    def _exec_ret(self, parsed: ParsedLine, info: OpInfo) -> bool:
        self.trace.append(HALT_MESSAGE)
        return True

    def _exec_mov(self, parsed: ParsedLine, info: OpInfo) -> bool:
        dest, src = parsed.operands[0], parsed.operands[1]
        value = self._read_source(src)
        self.regs.write(dest, value)
        self.trace.append(f"{parsed.opcode} {dest} <- {value} ({format_hex(value)})")
        return False

    def _exec_binary(self, parsed: ParsedLine, info: OpInfo) -> bool:
        dest, src1, src2 = self._binary_operands(parsed)
        a = self.regs.read(src1)
        b = self._read_source(src2)
        result = self._compute(info.op, a, b)
        self.regs.write(dest, result)
        if info.flags is not None:
            addend = to_s64(-b) if info.op == Op.SUB else b
            self._update_flags(info.flags, result, a, addend)
        sym = OP_SYMBOLS[info.op]
        self.trace.append(f"{parsed.opcode} {dest} <- {a} {sym} {b} = {result} ({format_hex(result)})")
        return False

    def _exec_step(self, parsed: ParsedLine, info: OpInfo) -> bool:
        dest = parsed.operands[0]
        a = self.regs.read(dest)
        delta = 1 if info.op == Op.INC else -1
        result = to_s64(a + delta)
        self.regs.write(dest, result)
        if info.flags is not None:
            self._update_flags(info.flags, result, a, delta)
        sym = "+" if delta > 0 else "-"
        self.trace.append(f"{parsed.opcode} {dest} <- {a} {sym} 1 = {result} ({format_hex(result)})")
        return False

    def _exec_cmp(self, parsed: ParsedLine, info: OpInfo) -> bool:
        lhs, rhs = parsed.operands[0], parsed.operands[1]
        a = self.regs.read(lhs)
        b = self._read_source(rhs)
        result = to_s64(a - b)
        self._update_flags(info.flags or "arith", result, a, to_s64(-b))
        if a == b:
            comparison = "equal (==)"
        elif a > b:
            comparison = "greater (>)"
        else:
            comparison = "less (<)"
        diff = f"diff {result} ({format_hex(result)})"
        self.trace.append(f"{parsed.opcode} {lhs}({a}) vs {rhs}({b}): {comparison}, {diff}")
        return False


class Simulator:
    """Line-oriented simulator for one architecture.

    Owns its register file, flags and trace; every execute() starts from a
    clean state.
    """

    arch: ArchSpec
    lenient_log: bool
    registers: RegisterFile
    flags: FlagRegister
    trace: list[str]
    line: int

    def __init__(
        self,
        arch: str | ArchSpec = "arm64",
        stack_pointer: int = STACK_SENTINEL,
        lenient_log: bool = False,
    ) -> None:
        """Create a simulator for `arch` ("arm64" or "x86")."""
        self.arch = get_arch(arch)
        self.lenient_log = bool(lenient_log)
        self.registers = RegisterFile(self.arch, stack_pointer)
        self.flags = FlagRegister(self.arch)
        self.trace = []
        self.line = 0
        self.cu = ControlUnit(self.registers, self.flags, self.trace)

    @classmethod
    def from_config(cls, config: str | Path | dict[str, Any] | None = None) -> Simulator:
        """Build a simulator from a config path, dict or None (defaults)."""
        cfg = load_config(config)
        return cls(cfg["arch"], stack_pointer=cfg["stack_pointer"], lenient_log=cfg["lenient_log"])

    def reset(self) -> None:
        """Zero registers (stack pointer to sentinel), clear flags and trace."""
        self.registers.reset()
        self.flags.reset()
        # keep the list object: the control unit appends to it
        self.trace.clear()
        self.line = 0

    def get_register_state(self) -> dict[str, dict[str, Any]]:
        return self.registers.snapshot()

    def get_flags_state(self) -> dict[str, bool]:
        return self.flags.snapshot()

    def _log_step(self, line_no: int, parsed: ParsedLine) -> None:
        # skip verbose per-line logs in lenient mode
        if self.lenient_log:
            return
        logging.debug(
            "LINE: %4d OP: %-5s FLAGS: %s REGS: %s\tINSTR: %s",
            line_no,
            parsed.opcode,
            self.flags.compact(),
            self.registers.compact(),
            parsed.text,
        )

    def execute(self, source: str) -> ExecutionResult:
        """Run `source` top to bottom.

        Stops at RET (success) or at the first SimulationError (failure, the
        error and its 1-based line number end up in the trace and result).
        """
        self.reset()
        self.trace.append(TRACE_START)
        self.trace.append("")
        lines = split_lines(source)
        logging.debug("Simulator(%s): run started, %d source line(s)", self.arch.name, len(lines))

        try:
            for idx, raw in enumerate(lines, start=1):
                self.line = idx
                parsed = parse_line(raw, self.arch)
                if parsed is None:
                    continue
                halted = self.cu.exec(parsed)
                self._log_step(idx, parsed)
                if halted:
                    logging.debug("RET on line %d -> halt", idx)
                    break
        except SimulationError as e:
            e.line = self.line
            logging.debug("run aborted: %s", e)
            self.trace.append("")
            self.trace.append(f"ERROR on line {self.line}: {e.describe()}")
            return ExecutionResult(success=False, output="\n".join(self.trace), error=str(e))

        self.trace.append("")
        self.trace.append(TRACE_SUCCESS)
        logging.debug("Simulator(%s): run finished at line %d", self.arch.name, self.line)
        return ExecutionResult(success=True, output="\n".join(self.trace))


def format_state(sim: Simulator) -> str:
    """Register table and flag line for terminal output; '*' marks modified registers."""
    lines: list[str] = []
    for name, st in sim.get_register_state().items():
        mark = " *" if st["modified"] else ""
        lines.append(f"{name:<4} {st['value']:>20}  {st['hex']}{mark}")
    lines.append("FLAGS: " + " ".join(f"{n}={int(v)}" for n, v in sim.get_flags_state().items()))
    return "\n".join(lines)


# ---------- Public API ----------
def run_source(
    source: str, config: str | Path | dict[str, Any] | None = None
) -> tuple[ExecutionResult, Simulator]:
    """Run a program with the given config and return (result, simulator)."""
    sim = Simulator.from_config(config)
    result = sim.execute(source)
    return result, sim


# ---------- CLI ----------
def main(argv: list[str] | None = None) -> int:
    """Command-line entry point. Returns the process exit status."""
    ap = argparse.ArgumentParser(
        description="Line-oriented ARM64 / x86-64 instruction simulator. "
        "Runs a source file (or a bundled example) and prints the execution trace."
    )
    ap.add_argument("program", nargs="?", help="assembly source file (omit when using --example)")
    ap.add_argument("--arch", default=None, help="architecture: arm64 or x86 (overrides config)")
    ap.add_argument("--example", default=None, help="run a bundled example program by name")
    ap.add_argument("--list-examples", action="store_true", help="list bundled examples for the architecture")
    ap.add_argument("--config", help="path to yaml config", default=None)
    ap.add_argument("--no-state", action="store_true", help="do not print registers and flags after the trace")

    help_debug = "enable debug logging to logfile (per-line state)."
    help_logfile = "path to simulator log"
    help_console = "also echo logs to console (only when --debug)"
    ap.add_argument("--debug", action="store_true", help=help_debug)
    ap.add_argument("--logfile", default=LOGFILE, help=help_logfile)
    ap.add_argument("--console", action="store_true", help=help_console)
    args = ap.parse_args(argv)

    init_logging(logfile=args.logfile, debug=args.debug, console=args.console)

    try:
        cfg = load_config(args.config)
        if args.arch is not None:
            cfg = load_config({**cfg, "arch": args.arch})
    except ConfigError as e:
        print("Bad config:", e)
        return 2

    if args.list_examples:
        for name in example_names(cfg["arch"]):
            print(name)
        return 0

    if args.example is not None:
        try:
            source = get_example(cfg["arch"], args.example)
        except KeyError as e:
            print("Unknown example:", e.args[0])
            return 2
    elif args.program is not None:
        path = Path(args.program)
        if not path.exists():
            print("Program file not found:", args.program)
            return 2
        source = path.read_text(encoding="utf-8")
    else:
        print("No program given: pass a source file or --example NAME")
        return 2

    result, sim = run_source(source, cfg)

    sys.stdout.write(result.output)
    sys.stdout.write("\n")
    if not args.no_state:
        sys.stdout.write("\n")
        sys.stdout.write(format_state(sim))
        sys.stdout.write("\n")
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
