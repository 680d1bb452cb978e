from __future__ import annotations

import ast
import logging
import operator
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Protocol

from iocwire.exceptions import IocWireInvalidConditionError, IocWireNonBooleanConditionError

if TYPE_CHECKING:
    from collections.abc import Callable

    from iocwire._internal.descriptors import ObjectDescriptor
    from iocwire._internal.values import ValueSource

logger = logging.getLogger(__name__)

_REFERENCE_PATTERN = re.compile(r"#([A-Za-z0-9_][A-Za-z0-9_.]*)")
_IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_PATTERN = re.compile(
    r"0[xXoObB][0-9A-Fa-f_]+|(?:\d[\d_]*(?:\.[\d_]*)?|\.\d[\d_]*)(?:[eE][+-]?\d+)?",
)
_KEYWORDS = {
    "true": "True",
    "false": "False",
    "nil": "None",
    "null": "None",
    "and": "and",
    "or": "or",
    "not": "not",
    "in": "in",
}
_PARAMETER_PREFIX = "_p"

_BINARY_OPERATORS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
}
_COMPARE_OPERATORS: dict[type[ast.cmpop], Callable[[Any, Any], Any]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
}


class ConditionEvaluator(Protocol):
    """Evaluate a registration condition expression."""

    def evaluate(self, expression: str) -> object: ...


@dataclass(frozen=True, slots=True)
class _CompiledCondition:
    tree: ast.Expression
    references: tuple[str, ...]


class ExpressionConditionEvaluator:
    """Evaluate boolean expressions over configuration values.

    ``#dotted.key`` reads a value from the value source (missing keys read
    as ``nil``). Supported literals are numbers, quoted strings, ``true``,
    ``false`` and ``nil``. Operators: comparisons, ``&&``/``and``,
    ``||``/``or``, ``!``/``not``, arithmetic and ``in`` against list
    literals.

    Examples:
        .. code-block:: python

            evaluator = ExpressionConditionEvaluator(values)
            evaluator.evaluate("#feature.cache == true && #cache.size > 10")

    """

    def __init__(self, value_source: ValueSource) -> None:
        self._value_source = value_source

    def validate(self, expression: str) -> None:
        """Check expression syntax without reading any value.

        Raises:
            IocWireInvalidConditionError: If expression cannot be parsed.

        """
        _compile(expression)

    def evaluate(self, expression: str) -> object:
        compiled = _compile(expression)
        parameters: dict[str, Any] = {}
        for index, key in enumerate(compiled.references):
            value, found = self._value_source.get_value(key)
            parameters[f"{_PARAMETER_PREFIX}{index}"] = value if found else None
        return _Evaluation(expression=expression, parameters=parameters).visit(compiled.tree.body)


class ConditionGate:
    """Decide whether a descriptor participates in resolution.

    Conditions are evaluated on every call because configuration values may
    change between lookups.
    """

    def __init__(self, evaluator: ConditionEvaluator) -> None:
        self._evaluator = evaluator

    def is_active(self, descriptor: ObjectDescriptor) -> bool:
        if not descriptor.condition:
            return True
        result = self._evaluator.evaluate(descriptor.condition)
        if not isinstance(result, bool):
            msg = (
                f"Condition '{descriptor.condition}' of {descriptor.identifier} evaluated to "
                f"{result!r}, expected a boolean."
            )
            raise IocWireNonBooleanConditionError(msg)
        if not result:
            logger.debug(
                "Object %s inactive: condition '%s' is false",
                descriptor,
                descriptor.condition,
            )
        return result


@lru_cache(maxsize=256)
def _compile(expression: str) -> _CompiledCondition:
    source, references = _translate(expression)
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as error:
        msg = f"Invalid condition '{expression}': {error.msg}"
        raise IocWireInvalidConditionError(msg) from error
    return _CompiledCondition(tree=tree, references=references)


def _translate(expression: str) -> tuple[str, tuple[str, ...]]:
    """Rewrite an expression into Python syntax, leaving string literals intact."""
    parts: list[str] = []
    references: list[str] = []
    position = 0
    length = len(expression)

    while position < length:
        char = expression[position]

        if char in {"'", '"'}:
            end = position + 1
            while end < length and expression[end] != char:
                end += 2 if expression[end] == "\\" else 1
            if end >= length:
                msg = f"Invalid condition '{expression}': unterminated string literal."
                raise IocWireInvalidConditionError(msg)
            parts.append(expression[position : end + 1])
            position = end + 1
            continue

        if char == "#":
            match = _REFERENCE_PATTERN.match(expression, position)
            if match is None:
                msg = f"Invalid condition '{expression}': '#' must be followed by a value key."
                raise IocWireInvalidConditionError(msg)
            parts.append(f"{_PARAMETER_PREFIX}{len(references)}")
            references.append(match.group(1))
            position = match.end()
            continue

        two = expression[position : position + 2]
        if two in {"&&", "||"}:
            parts.append(" and " if two == "&&" else " or ")
            position += 2
            continue
        if char == "!" and two != "!=":
            parts.append(" not ")
            position += 1
            continue

        number = _NUMBER_PATTERN.match(expression, position)
        if number is not None:
            parts.append(number.group(0))
            position = number.end()
            continue

        match = _IDENTIFIER_PATTERN.match(expression, position)
        if match is not None:
            word = match.group(0)
            if word not in _KEYWORDS:
                msg = (
                    f"Invalid condition '{expression}': unknown identifier '{word}'. "
                    "Reference values with '#key'."
                )
                raise IocWireInvalidConditionError(msg)
            parts.append(_KEYWORDS[word])
            position = match.end()
            continue

        parts.append(char)
        position += 1

    return "".join(parts).strip(), tuple(references)


@dataclass(slots=True)
class _Evaluation:
    expression: str
    parameters: dict[str, Any]

    def visit(self, node: ast.AST) -> Any:
        try:
            return self._visit(node)
        except (TypeError, ZeroDivisionError) as error:
            msg = f"Cannot evaluate condition '{self.expression}': {error}"
            raise IocWireInvalidConditionError(msg) from error

    def _visit(self, node: ast.AST) -> Any:  # noqa: PLR0911
        if isinstance(node, ast.Constant):
            return node.value
        if isinstance(node, ast.Name):
            if node.id not in self.parameters:
                msg = f"Invalid condition '{self.expression}': unknown name '{node.id}'."
                raise IocWireInvalidConditionError(msg)
            return self.parameters[node.id]
        if isinstance(node, ast.BoolOp):
            return self._visit_bool_op(node)
        if isinstance(node, ast.UnaryOp):
            operand = self._visit(node.operand)
            if isinstance(node.op, ast.Not):
                return not operand
            if isinstance(node.op, ast.USub):
                return -operand
            if isinstance(node.op, ast.UAdd):
                return +operand
        if isinstance(node, ast.BinOp):
            binary = _BINARY_OPERATORS.get(type(node.op))
            if binary is not None:
                return binary(self._visit(node.left), self._visit(node.right))
        if isinstance(node, ast.Compare):
            return self._visit_compare(node)
        if isinstance(node, ast.List | ast.Tuple):
            return tuple(self._visit(element) for element in node.elts)

        msg = f"Invalid condition '{self.expression}': unsupported construct {type(node).__name__}."
        raise IocWireInvalidConditionError(msg)

    def _visit_bool_op(self, node: ast.BoolOp) -> Any:
        is_and = isinstance(node.op, ast.And)
        result: Any = is_and
        for value_node in node.values:
            result = self._visit(value_node)
            if is_and and not result:
                return result
            if not is_and and result:
                return result
        return result

    def _visit_compare(self, node: ast.Compare) -> bool:
        left = self._visit(node.left)
        for compare_op, comparator in zip(node.ops, node.comparators, strict=True):
            function = _COMPARE_OPERATORS.get(type(compare_op))
            if function is None:
                msg = (
                    f"Invalid condition '{self.expression}': unsupported comparison "
                    f"{type(compare_op).__name__}."
                )
                raise IocWireInvalidConditionError(msg)
            right = self._visit(comparator)
            if not function(left, right):
                return False
            left = right
        return True


__all__ = ["ConditionEvaluator", "ConditionGate", "ExpressionConditionEvaluator"]
