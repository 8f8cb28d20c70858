"""Formula sanitizer and evaluator for user-authored custom metrics.

Custom metric formulas are free text typed by the user, e.g.
``(totalDebt / netIncome) * 100``.  Record field names come from providers
and may contain spaces or punctuation, or collide with reserved words.

Processing a formula:
1. ``sanitize_formula`` strips comments and rejects anything that looks like
   code rather than arithmetic
2. ``create_field_mapping`` turns every record field into a unique, valid
   identifier
3. ``replace_field_names_in_formula`` rewrites the formula with those
   identifiers
4. ``validate_formula_fields`` reports identifiers that are neither fields
   nor math functions
5. ``evaluate_formula`` parses the result into a Python AST and walks a
   strict whitelist of node types: numbers, arithmetic operators,
   parentheses, known math functions and scope names.  Nothing is ever
   compiled or executed as code.

``^`` means power, as in spreadsheet formulas: ``a ^ b`` equals
``a ** b``.  There is no bitwise XOR in formulas.
"""

import ast
import keyword
import logging
import math
import operator
import re
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from peercompare.schemas.scoring import FieldValidationResult

logger = logging.getLogger(__name__)


class FormulaError(ValueError):
    """A formula could not be evaluated to a finite number."""


# ── identifier rules ─────────────────────────────────────────────────

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_WORD = re.compile(r"\b[A-Za-z_][A-Za-z0-9_]*\b", re.ASCII)

# Words that may not be used as a bare field identifier.  Covers the
# reserved words formulas were historically written against plus Python's
# own keywords, since formulas are parsed as Python expressions.
RESERVED_WORDS = frozenset(
    {
        "break", "case", "catch", "class", "const", "continue", "debugger",
        "default", "delete", "do", "else", "export", "extends", "finally",
        "for", "function", "if", "import", "in", "instanceof", "new", "return",
        "super", "switch", "this", "throw", "try", "typeof", "var", "void",
        "while", "with", "yield", "let", "static", "enum", "implements",
        "interface", "package", "private", "protected", "public", "abstract",
        "boolean", "byte", "char", "double", "final", "float", "goto", "int",
        "long", "native", "short", "synchronized", "transient", "volatile",
        "arguments", "eval", "undefined", "null", "true", "false", "NaN",
        "Infinity", "console", "window", "document", "global", "process",
    }
    | set(keyword.kwlist)
)


def _round_half_up(x: float) -> float:
    return float(math.floor(x + 0.5))


MATH_FUNCTIONS: Dict[str, Callable[..., float]] = {
    "abs": abs,
    "ceil": math.ceil,
    "floor": math.floor,
    "round": _round_half_up,
    "sqrt": math.sqrt,
    "pow": math.pow,
    "max": max,
    "min": min,
    "log": math.log,
    "exp": math.exp,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
}
MATH_CONSTANTS: Dict[str, float] = {"PI": math.pi, "E": math.e}
MATH_NAMESPACE = "Math"

# Identifiers a formula may use without them being record fields.
SAFE_KEYWORDS = frozenset(
    {
        "return", "if", "else", "for", "while", "do", "switch", "case",
        "break", "continue", "try", "catch", "finally", "throw", "new",
        "this", "true", "false", "null", "undefined", "NaN", "Infinity",
        "typeof", "instanceof", "in", "void", "delete", "Math", "Number",
        "String", "Boolean", "Array", "Object", "Date", "parseInt", "parseFloat",
        "isNaN", "isFinite",
    }
    | set(MATH_FUNCTIONS)
    | set(MATH_CONSTANTS)
)

# ── formula rules ────────────────────────────────────────────────────

DANGEROUS_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"eval\s*\(",
        r"Function\s*\(",
        r"new\s+Function",
        r"setTimeout\s*\(",
        r"setInterval\s*\(",
        r"import\s*\(",
        r"require\s*\(",
        r"with\s*\(",
        r"constructor",
        r"prototype",
        r"__proto__",
        r"process\.",
        r"global\.",
        r"window\.",
        r"document\.",
        r"console\.",
        r"\.call\s*\(",
        r"\.apply\s*\(",
        # Python-side escapes
        r"__",
        r"\bimport\b",
        r"\blambda\b",
        r"exec\s*\(",
        r"compile\s*\(",
        r"\bopen\s*\(",
        r"\bos\.",
        r"\bsys\.",
        r"\bglobals\b",
        r"\bgetattr\b",
    )
]

_ALLOWED_CHARS = re.compile(r"^[\s\w+\-*/().,\[\]^%!<>=&|?$:]+$", re.ASCII)
_QUOTED = re.compile(r"\"[^\"]*\"|'[^']*'")
_BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")
_LINE_COMMENT = re.compile(r"//.*$", re.MULTILINE)


# ══════════════════════════════════════════════════════════════════════════
# FIELD NAMES
# ══════════════════════════════════════════════════════════════════════════


def is_valid_identifier(name: str) -> bool:
    return bool(name) and bool(_IDENTIFIER.match(name)) and name not in RESERVED_WORDS


def sanitize_field_name(field_name: str) -> Optional[str]:
    """Turn an arbitrary field name into a usable identifier.

    Returns None when nothing usable is left (e.g. a purely numeric name).

    >>> sanitize_field_name("peRatio")
    'peRatio'
    >>> sanitize_field_name("Financials Metric Current Ratio Annual")
    'Financials_Metric_Current_Ratio_Annual'
    >>> sanitize_field_name("class")
    '_class'
    >>> sanitize_field_name("2024") is None
    True
    """
    if not isinstance(field_name, str) or not field_name:
        return None

    if is_valid_identifier(field_name):
        return field_name

    sanitized = field_name.strip()
    sanitized = re.sub(r"^[0-9]+", "", sanitized)
    sanitized = re.sub(r"[^A-Za-z0-9_]", "_", sanitized)
    if not re.match(r"^[A-Za-z_]", sanitized):
        sanitized = "_" + sanitized
    sanitized = re.sub(r"_+", "_", sanitized).strip("_")

    if not sanitized:
        return None
    if is_valid_identifier(sanitized):
        return sanitized
    return "_" + sanitized


def create_field_mapping(field_names: Iterable[str]) -> Dict[str, str]:
    """Map each original field name to a unique sanitized identifier.

    Collisions get ``_1``, ``_2``, ... suffixes so the mapping stays
    injective.  Names that cannot be sanitized are left out.
    """
    mapping: Dict[str, str] = {}
    used: set = set()

    for original in field_names:
        sanitized = sanitize_field_name(original)
        if not sanitized:
            continue

        final = sanitized
        counter = 1
        while final in used:
            final = f"{sanitized}_{counter}"
            counter += 1

        used.add(final)
        mapping[original] = final

    return mapping


def replace_field_names_in_formula(formula: str, field_mapping: Mapping[str, str]) -> str:
    """Rewrite original field names in *formula* to their identifiers.

    Longest names go first and matches must not be flanked by identifier
    characters, so ``debt`` never rewrites part of ``debtToEquity``.  All
    names are replaced in one pass; substituted text is never rewritten
    again.
    """
    changed = {o: s for o, s in field_mapping.items() if o != s}
    if not changed:
        return formula

    alternatives = "|".join(
        re.escape(name) for name in sorted(changed, key=len, reverse=True)
    )
    pattern = re.compile(rf"(?<![A-Za-z0-9_])(?:{alternatives})(?![A-Za-z0-9_])")
    return pattern.sub(lambda m: changed[m.group(0)], formula)


def validate_formula_fields(
    formula: str, field_mapping: Mapping[str, str]
) -> FieldValidationResult:
    """Check every bare identifier in *formula* is a known field or math name."""
    known = set(field_mapping) | set(field_mapping.values())
    missing: List[str] = []

    for match in _WORD.findall(formula):
        if match in SAFE_KEYWORDS or match in known:
            continue
        if match not in missing:
            missing.append(match)

    return FieldValidationResult(valid=not missing, missing_fields=missing)


# ══════════════════════════════════════════════════════════════════════════
# FORMULA TEXT
# ══════════════════════════════════════════════════════════════════════════


def sanitize_formula(formula: str) -> Optional[str]:
    """Strip comments and reject formulas that look like code.

    Returns the cleaned formula, or None when it is empty or unsafe.

    >>> sanitize_formula("(a + b) / 2")
    '(a + b) / 2'
    >>> sanitize_formula("eval('1')") is None
    True
    """
    if not isinstance(formula, str):
        return None

    cleaned = formula.strip()
    if not cleaned:
        return None

    cleaned = _BLOCK_COMMENT.sub("", cleaned)
    cleaned = _LINE_COMMENT.sub("", cleaned).strip()
    if not cleaned:
        return None

    for pattern in DANGEROUS_PATTERNS:
        if pattern.search(cleaned):
            logger.warning("Rejected formula matching %s", pattern.pattern)
            return None

    if not _ALLOWED_CHARS.match(_QUOTED.sub("", cleaned) or " "):
        logger.warning("Rejected formula with disallowed characters")
        return None

    return cleaned


# ══════════════════════════════════════════════════════════════════════════
# EVALUATION
# ══════════════════════════════════════════════════════════════════════════


def _power(base: float, exponent: float) -> float:
    result = base ** exponent
    if isinstance(result, complex):
        raise FormulaError("Power produced a complex number")
    return result


_BINARY_OPS: Dict[type, Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
    ast.Pow: _power,
    ast.BitXor: _power,  # spreadsheet-style ``^``
}

_UNARY_OPS: Dict[type, Callable[[float], float]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


class _Evaluator:
    """Walks a parsed expression, refusing every node outside the whitelist."""

    def __init__(self, scope: Mapping[str, float]):
        self.scope = scope

    def visit(self, node: ast.AST) -> float:
        if isinstance(node, ast.Expression):
            return self.visit(node.body)

        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
                raise FormulaError(f"Unsupported literal: {node.value!r}")
            return float(node.value)

        if isinstance(node, ast.Name):
            if node.id in self.scope:
                return float(self.scope[node.id])
            if node.id in MATH_CONSTANTS:
                return MATH_CONSTANTS[node.id]
            raise FormulaError(f"Unknown field: {node.id}")

        if isinstance(node, ast.BinOp):
            op = _BINARY_OPS.get(type(node.op))
            if op is None:
                raise FormulaError(f"Unsupported operator: {type(node.op).__name__}")
            return op(self.visit(node.left), self.visit(node.right))

        if isinstance(node, ast.UnaryOp):
            op = _UNARY_OPS.get(type(node.op))
            if op is None:
                raise FormulaError(f"Unsupported operator: {type(node.op).__name__}")
            return op(self.visit(node.operand))

        if isinstance(node, ast.Attribute):
            if self._is_math_member(node) and node.attr in MATH_CONSTANTS:
                return MATH_CONSTANTS[node.attr]
            raise FormulaError("Attribute access is not allowed")

        if isinstance(node, ast.Call):
            return self._call(node)

        raise FormulaError(f"Unsupported expression: {type(node).__name__}")

    @staticmethod
    def _is_math_member(node: ast.Attribute) -> bool:
        return isinstance(node.value, ast.Name) and node.value.id == MATH_NAMESPACE

    def _call(self, node: ast.Call) -> float:
        func = node.func
        if isinstance(func, ast.Name):
            name = func.id
        elif isinstance(func, ast.Attribute) and self._is_math_member(func):
            name = func.attr
        else:
            raise FormulaError("Only math functions may be called")

        if name not in MATH_FUNCTIONS or node.keywords:
            raise FormulaError(f"Unsupported function: {name}")

        args = [self.visit(arg) for arg in node.args]
        try:
            return float(MATH_FUNCTIONS[name](*args))
        except TypeError as exc:
            raise FormulaError(f"Bad arguments for {name}: {exc}") from exc


def evaluate_formula(expression: str, scope: Mapping[str, float]) -> float:
    """Evaluate a sanitized, field-substituted expression against *scope*.

    Args:
        expression: Arithmetic over identifiers present in *scope*
        scope: Sanitized identifier -> numeric value

    Returns:
        The finite result.

    Raises:
        FormulaError: On syntax errors, disallowed constructs, unknown
            names, math domain errors, division by zero or a non-finite
            result.
    """
    try:
        tree = ast.parse(expression.strip(), mode="eval")
        result = _Evaluator(scope).visit(tree)
    except FormulaError:
        raise
    except (SyntaxError, ValueError, ZeroDivisionError, OverflowError, RecursionError) as exc:
        raise FormulaError(str(exc) or type(exc).__name__) from exc

    if not math.isfinite(result):
        raise FormulaError("Formula result is not finite")
    return result
