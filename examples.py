"""Bundled example programs, keyed by architecture and name."""

from __future__ import annotations

from isa import get_arch

ARM64_EXAMPLES: dict[str, str] = {
    "basic": """// Simple example: addition
MOV X0, #42
MOV X1, #8
ADD X2, X0, X1
// X2 now holds 50""",
    "fibonacci": """// Fibonacci sequence, unrolled
MOV X0, #0        // Fib(0) = 0
MOV X1, #1        // Fib(1) = 1
MOV X2, #0        // result
MOV X3, #10       // counter

// F(2) .. F(5)
ADD X2, X0, X1    // F(2) = F(0) + F(1)
MOV X0, X1        // shift the window
MOV X1, X2

ADD X2, X0, X1    // F(3)
MOV X0, X1
MOV X1, X2

ADD X2, X0, X1    // F(4)
MOV X0, X1
MOV X1, X2

ADD X2, X0, X1    // F(5)
MOV X0, X1
MOV X1, X2""",
    "bitwise": """// Bitwise operations
MOV X0, #0xFF
MOV X1, #0x0F
AND X2, X0, X1    // X2 = 0x0F
ORR X3, X0, X1    // X3 = 0xFF
EOR X4, X0, X1    // X4 = 0xF0
LSL X5, X1, #4    // X5 = 0xF0""",
    "comparison": """// Comparisons
MOV X0, #100
MOV X1, #50
CMP X0, X1        // 100 vs 50
SUB X2, X0, X1    // X2 = 50

MOV X3, #25
MOV X4, #25
CMP X3, X4        // 25 vs 25 (equal)""",
    "multiply": """// Multiplication
MOV X0, #7
MOV X1, #6
MUL X2, X0, X1    // X2 = 42

MOV X3, #3
MUL X4, X2, X3    // X4 = 126

MOV X5, #2
LSL X6, X5, #4    // X6 = 32""",
}

X86_EXAMPLES: dict[str, str] = {
    "basic": """; Simple example: addition
MOV RAX, 42
MOV RBX, 8
ADD RAX, RBX
; RAX now holds 50""",
    "fibonacci": """; Fibonacci sequence, unrolled
MOV RAX, 0        ; Fib(0) = 0
MOV RBX, 1        ; Fib(1) = 1
MOV RCX, 0        ; result

; F(2) .. F(5)
MOV RCX, RAX
ADD RCX, RBX      ; F(2)
MOV RAX, RBX
MOV RBX, RCX

MOV RCX, RAX
ADD RCX, RBX      ; F(3)
MOV RAX, RBX
MOV RBX, RCX

MOV RCX, RAX
ADD RCX, RBX      ; F(4)
MOV RAX, RBX
MOV RBX, RCX

MOV RCX, RAX
ADD RCX, RBX      ; F(5)
MOV RAX, RBX
MOV RBX, RCX""",
    "bitwise": """; Bitwise operations
MOV RAX, 0xFF
MOV RBX, 0x0F
MOV RCX, RAX
AND RCX, RBX      ; RCX = 0x0F
MOV RDX, RAX
OR RDX, RBX       ; RDX = 0xFF
MOV RSI, RAX
XOR RSI, RBX      ; RSI = 0xF0
MOV RDI, RBX
SHL RDI, 4        ; RDI = 0xF0""",
    "comparison": """; Comparisons
MOV RAX, 100
MOV RBX, 50
CMP RAX, RBX      ; 100 vs 50
SUB RAX, RBX      ; RAX = 50

MOV RCX, 25
MOV RDX, 25
CMP RCX, RDX      ; 25 vs 25 (equal)
DEC RDX           ; RDX = 24
INC RCX           ; RCX = 26""",
    "multiply": """; Multiplication
MOV RAX, 7
MOV RBX, 6
IMUL RAX, RBX     ; RAX = 42

MOV RCX, 3
MUL RAX, RCX      ; RAX = 126

MOV RDX, 2
SHL RDX, 4        ; RDX = 32""",
}

EXAMPLES: dict[str, dict[str, str]] = {
    "arm64": ARM64_EXAMPLES,
    "x86": X86_EXAMPLES,
}


def example_names(arch: str) -> list[str]:
    """Names of the bundled examples for an architecture, in display order."""
    return list(EXAMPLES[get_arch(arch).name])


def get_example(arch: str, name: str) -> str:
    """Return the source of one example.

    Raises KeyError if the example does not exist for the architecture.
    """
    table = EXAMPLES[get_arch(arch).name]
    key = name.strip().lower()
    if key not in table:
        msg = f"no example '{name}' for {get_arch(arch).name} (have: {', '.join(table)})"
        raise KeyError(msg)
    return table[key]
