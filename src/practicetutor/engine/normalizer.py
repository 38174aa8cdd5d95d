"""Answer normalization for comparison."""

from __future__ import annotations

import re

# Unicode math glyphs → ASCII tokens
GLYPHS: dict[str, str] = {
    "×": "*",
    "·": "*",
    "÷": "/",
    "−": "-",
    "–": "-",
    "—": "-",
    "π": "pi",
    "√": "sqrt",
    "∛": "cbrt",
    "∞": "infinity",
    "≤": "<=",
    "≥": ">=",
    "≠": "!=",
    "≈": "~=",
    "±": "+-",
    "°": "deg",
    "⁰": "^0",
    "¹": "^1",
    "²": "^2",
    "³": "^3",
    "⁴": "^4",
    "⁵": "^5",
    "⁶": "^6",
    "⁷": "^7",
    "⁸": "^8",
    "⁹": "^9",
    "½": "(1/2)",
    "⅓": "(1/3)",
    "⅔": "(2/3)",
    "¼": "(1/4)",
    "¾": "(3/4)",
    "⅕": "(1/5)",
    "⅛": "(1/8)",
    "α": "alpha",
    "β": "beta",
    "γ": "gamma",
    "δ": "delta",
    "θ": "theta",
    "λ": "lambda",
    "μ": "mu",
    "σ": "sigma",
    "ω": "omega",
    "∑": "sum",
}

# LaTeX commands kept as plain tokens; any other command is dropped.
LATEX_COMMANDS: dict[str, str] = {
    "sqrt": "sqrt",
    "pi": "pi",
    "times": "*",
    "cdot": "*",
    "div": "/",
    "pm": "+-",
    "mp": "-+",
    "le": "<=",
    "leq": "<=",
    "ge": ">=",
    "geq": ">=",
    "ne": "!=",
    "neq": "!=",
    "approx": "~=",
    "infty": "infinity",
    "circ": "deg",
    "alpha": "alpha",
    "beta": "beta",
    "gamma": "gamma",
    "delta": "delta",
    "theta": "theta",
    "lambda": "lambda",
    "mu": "mu",
    "sigma": "sigma",
    "omega": "omega",
    "sin": "sin",
    "cos": "cos",
    "tan": "tan",
    "log": "log",
    "ln": "ln",
    "exp": "exp",
}

_WHITESPACE = re.compile(r"\s+")
# Line breaks, thin/medium/thick/negative spaces, escaped spaces, \quad and \qquad.
_SPACING = re.compile(r"\\\\|\\(?:[,;:!]|\s|q?quad(?![a-z]))")
# A command name ends at whitespace; mark the boundary before whitespace goes.
_COMMAND_END = re.compile(r"(\\[a-z]+)\s+(?=[a-z])")
_GLYPH = re.compile("|".join(re.escape(g) for g in GLYPHS))
_FRAC = re.compile(r"\\[dtc]?frac\{([^{}]*)\}\{([^{}]*)\}")
_SQRT = re.compile(r"\\sqrt\{([^{}]*)\}")
_DELIMITERS = re.compile(r"\\[\[\]()]|\$")
_SIZING = re.compile(r"\\(?:left|right|displaystyle)")
# Longest names first, so "\pir" typed without a space still reads as "\pi" + "r".
_COMMAND = re.compile(
    r"\\(" + "|".join(sorted(LATEX_COMMANDS, key=len, reverse=True)) + ")"
)
_UNKNOWN_COMMAND = re.compile(r"\\[a-z]+")
_LEFTOVER = re.compile(r"[\\{}]")


def _rewrite_structures(text: str) -> str:
    """Rewrite \\frac{A}{B} and \\sqrt{A}, innermost first."""
    while True:
        rewritten = _FRAC.sub(r"(\1)/(\2)", text)
        rewritten = _SQRT.sub(r"sqrt(\1)", rewritten)
        if rewritten == text:
            return text
        text = rewritten


def normalize(text: str) -> str:
    """Canonicalize an answer string for equivalence comparison.

    Deterministic, idempotent and total: anything that is not a string
    normalizes to the empty string.
    """
    if not isinstance(text, str):
        return ""
    text = text.strip().lower()
    text = _SPACING.sub("", text)
    text = _COMMAND_END.sub(r"\1{}", text)
    text = _WHITESPACE.sub("", text)
    text = _GLYPH.sub(lambda m: GLYPHS[m.group()], text)
    text = _DELIMITERS.sub("", text)
    text = _SIZING.sub("", text)
    text = _rewrite_structures(text)
    text = _COMMAND.sub(lambda m: LATEX_COMMANDS[m.group(1)], text)
    text = _UNKNOWN_COMMAND.sub("", text)
    return _LEFTOVER.sub("", text)
