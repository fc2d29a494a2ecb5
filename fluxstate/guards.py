"""
Guard Evaluation

Guards are opaque expression text written in the editor's JavaScript
flavour (event.type === 'GO' && !context.locked). They are parsed with
JavaScript operator precedence and rewritten as a fully parenthesized
Jinja2 expression, then run inside Jinja2's sandboxed environment, so a
guard can read the context and event mappings but cannot reach Python
internals.

Equality keeps JavaScript's meaning through two registered tests:
`===` never coerces between booleans, numbers and strings, `==` compares
numeric strings with numbers. null and undefined both read as none.

Evaluation never raises: syntax errors, sandbox violations and runtime
errors all make the guard false.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from jinja2 import Undefined
from jinja2.exceptions import SecurityError
from jinja2.sandbox import SandboxedEnvironment

from .config import FLUX_CONFIG

logger = logging.getLogger(__name__)


class GuardSyntaxError(ValueError):
    """Raised when guard text falls outside the supported expression subset"""


_TOKEN_RE = re.compile(r"""
      (?P<ws>\s+)
    | (?P<string>'(?:\\.|[^'\\])*'|"(?:\\.|[^"\\])*")
    | (?P<number>\d+(?:\.\d+)?)
    | (?P<name>[A-Za-z_$][\w$]*)
    | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||\*\*|[!<>+\-*/%().\[\],])
    | (?P<bad>.)
""", re.VERBOSE | re.DOTALL)

_LITERALS = {
    'true': 'true',
    'false': 'false',
    'null': 'none',
    'undefined': 'none',
}

# Loosest first; None marks operators rendered as equality tests
_BINARY_LEVELS = [
    {'||': 'or'},
    {'&&': 'and'},
    {'===': None, '!==': None, '==': None, '!=': None},
    {'<': '<', '>': '>', '<=': '<=', '>=': '>='},
    {'+': '+', '-': '-'},
    {'*': '*', '/': '/', '%': '%'},
]

_EQUALITY_TESTS = {
    '===': 'strict_equal',
    '!==': 'not strict_equal',
    '==': 'loose_equal',
    '!=': 'not loose_equal',
}


def _tokenize(guard: str) -> List[Tuple[str, str]]:
    tokens = []
    for match in _TOKEN_RE.finditer(guard):
        kind = match.lastgroup
        if kind == 'ws':
            continue
        if kind == 'bad':
            raise GuardSyntaxError(f"Unexpected character {match.group()!r} at {match.start()}")
        tokens.append((kind, match.group()))
    return tokens


class GuardTranslator:
    """
    Recursive-descent translation of one guard

    Precedence, loosest to tightest: ||, &&, equality, relational,
    additive, multiplicative, ** (right associative), unary ! - +,
    then member access, indexing and calls.
    """

    def __init__(self, guard: str):
        self.tokens = _tokenize(guard)
        self.pos = 0

    def translate(self) -> str:
        result = self._binary(0)
        if self.pos < len(self.tokens):
            raise GuardSyntaxError(f"Unexpected {self.tokens[self.pos][1]!r}")
        return result

    def _at(self, text: str) -> bool:
        return self.pos < len(self.tokens) and self.tokens[self.pos] == ('op', text)

    def _next(self) -> Tuple[str, str]:
        if self.pos >= len(self.tokens):
            raise GuardSyntaxError("Unexpected end of guard")
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _expect(self, text: str):
        kind, value = self._next()
        if (kind, value) != ('op', text):
            raise GuardSyntaxError(f"Expected {text!r}, found {value!r}")

    def _binary(self, level: int) -> str:
        if level == len(_BINARY_LEVELS):
            return self._power()

        operators = _BINARY_LEVELS[level]
        left = self._binary(level + 1)
        while self.pos < len(self.tokens):
            kind, value = self.tokens[self.pos]
            if kind != 'op' or value not in operators:
                break
            self.pos += 1
            right = self._binary(level + 1)
            if value in _EQUALITY_TESTS:
                left = f"({left} is {_EQUALITY_TESTS[value]}({right}))"
            else:
                left = f"({left} {operators[value]} {right})"
        return left

    def _power(self) -> str:
        base = self._unary()
        if self._at('**'):
            self.pos += 1
            return f"({base} ** {self._power()})"
        return base

    def _unary(self) -> str:
        if self._at('!'):
            self.pos += 1
            return f"(not {self._unary()})"
        if self._at('-') or self._at('+'):
            _, sign = self._next()
            return f"({sign}{self._unary()})"
        return self._postfix()

    def _postfix(self) -> str:
        result = self._primary()
        while True:
            if self._at('.'):
                self.pos += 1
                kind, name = self._next()
                if kind != 'name':
                    raise GuardSyntaxError(f"Expected a property name, found {name!r}")
                result = f"{result}.{name}"
            elif self._at('['):
                self.pos += 1
                index = self._binary(0)
                self._expect(']')
                result = f"{result}[{index}]"
            elif self._at('('):
                self.pos += 1
                result = f"{result}({self._arguments(')')})"
            else:
                return result

    def _arguments(self, closing: str) -> str:
        items = []
        if self._at(closing):
            self.pos += 1
            return ''
        while True:
            items.append(self._binary(0))
            if self._at(','):
                self.pos += 1
                continue
            self._expect(closing)
            return ', '.join(items)

    def _primary(self) -> str:
        kind, value = self._next()
        if kind in ('number', 'string'):
            return value
        if kind == 'name':
            return _LITERALS.get(value, value)
        if value == '(':
            inner = self._binary(0)
            self._expect(')')
            return inner
        if value == '[':
            return f"[{self._arguments(']')}]"
        raise GuardSyntaxError(f"Unexpected {value!r}")


def translate_guard(guard: str) -> str:
    """
    Rewrite a JavaScript-flavoured guard as a Jinja2 expression

    Examples:
        "1 === 2" → "(1 is strict_equal(2))"
        "a && !b" → "(a and (not b))"
        "!1 === 0" → "((not 1) is strict_equal(0))"

    Raises:
        GuardSyntaxError: if the text is not a supported expression
    """
    return GuardTranslator(guard).translate()


def _defined(value):
    return None if isinstance(value, Undefined) else value


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def strict_equal(left, right) -> bool:
    """JavaScript ===: booleans, numbers and strings never compare equal to each other"""
    left, right = _defined(left), _defined(right)
    if left is None or right is None:
        return left is right
    if _is_number(left) and _is_number(right):
        return left == right
    return type(left) is type(right) and left == right


def loose_equal(left, right) -> bool:
    """JavaScript ==: numeric strings compare with numbers and booleans"""
    left, right = _defined(left), _defined(right)
    if left is None or right is None:
        return left is right
    if isinstance(left, str) != isinstance(right, str):
        try:
            return float(left) == float(right)
        except (TypeError, ValueError):
            return False
    return left == right


class GuardEnvironment(SandboxedEnvironment):
    """Sandbox with equality tests registered and bounded ** and *"""

    intercepted_binops = frozenset(['*', '**'])

    def __init__(self, **options):
        super().__init__(**options)
        self.tests['strict_equal'] = strict_equal
        self.tests['loose_equal'] = loose_equal

    def call_binop(self, context, operator, left, right):
        limits = FLUX_CONFIG['guards']

        if operator == '**' and _is_number(right):
            if abs(right) > limits['max_exponent']:
                raise SecurityError(f"Exponent {right} is above {limits['max_exponent']}")
            if isinstance(left, int) and left.bit_length() * abs(right) > limits['max_int_bits']:
                raise SecurityError("Power result is too large")

        if operator == '*':
            for sequence, count in ((left, right), (right, left)):
                if (isinstance(sequence, (str, list, tuple)) and isinstance(count, int)
                        and len(sequence) * count > limits['max_sequence_length']):
                    raise SecurityError("Repeated sequence is too long")
            if (isinstance(left, int) and isinstance(right, int)
                    and left.bit_length() + right.bit_length() > limits['max_int_bits']):
                raise SecurityError("Product is too large")

        return super().call_binop(context, operator, left, right)


_sandbox = GuardEnvironment()


def evaluate_guard(guard: str, event_type: str, context: Optional[Dict[str, Any]] = None) -> bool:
    """
    Evaluate guard text against a context mapping and {'type': event_type}

    Args:
        guard: Guard expression text; empty or blank means always true
        event_type: Name of the event being resolved
        context: Values visible as `context` (empty mapping by default)

    Returns:
        Truthiness of the guard, or False if it cannot be evaluated
    """
    if not guard or not guard.strip():
        return True

    try:
        expression = _sandbox.compile_expression(translate_guard(guard.strip()))
        result = expression(context=dict(context or {}), event={'type': event_type})
        return bool(result)
    except Exception as e:
        logger.debug(f"Guard {guard!r} rejected for event {event_type!r}: {e}")
        return False
