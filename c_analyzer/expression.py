"""
pyparsing 기반 C 정수 상수식 평가기

#if/#elif 조건, enum 값, 매크로 상수 값 계산에 사용합니다.
infix_notation 으로 C 우선순위 문법을 만들고, 파싱 결과를 지연 평가 노드로 구성하여
&&, ||, ?: 는 필요한 피연산자만 평가합니다 (단락 평가).
"""
from typing import Iterable, Union

from pyparsing import (
    OpAssoc,
    ParseBaseException,
    ParserElement,
    Regex,
    infix_notation,
    one_of,
)

from shared_config.logger import logger

from .tokens import Token

ParserElement.enable_packrat()

Number = Union[int, float]

_SIMPLE_ESCAPES = {
    "n": 10, "t": 9, "r": 13, "0": 0, "a": 7, "b": 8, "f": 12, "v": 11,
    "\\": 92, "'": 39, '"': 34, "?": 63, "e": 27,
}


class ExpressionError(Exception):
    """상수식을 해석/평가할 수 없을 때"""


class DivisionByZero(ExpressionError):
    """0으로 나누기 또는 나머지"""


# =============================================================================
# 리터럴 변환
# =============================================================================

def parse_integer_literal(text: str) -> int:
    """
    정수 리터럴 값 (접미사 무시)

    Examples:
        "10UL" -> 10
        "0x1F" -> 31
        "017"  -> 15
        "0b101" -> 5
    """
    body = text.rstrip("uUlL")
    lower = body.lower()
    if lower.startswith("0x"):
        return int(body[2:], 16)
    if lower.startswith("0b"):
        return int(body[2:], 2)
    if len(body) > 1 and body.startswith("0"):
        return int(body, 8)
    return int(body)


def parse_float_literal(text: str) -> float:
    body = text.rstrip("fFlL")
    if body.lower().startswith("0x"):
        return float.fromhex(body)
    return float(body)


def char_literal_value(text: str) -> int:
    """
    문자 리터럴 값 (여러 문자는 8비트씩 이어 붙임)

    Examples:
        "'A'"    -> 65
        "'\\n'"  -> 10
        "'\\x41'" -> 65
    """
    quote = text.index("'")
    body = text[quote + 1:-1]
    values = []
    i = 0
    while i < len(body):
        c = body[i]
        if c != "\\":
            values.append(ord(c))
            i += 1
            continue
        nxt = body[i + 1] if i + 1 < len(body) else ""
        if nxt == "x":
            j = i + 2
            while j < len(body) and body[j] in "0123456789abcdefABCDEF":
                j += 1
            values.append(int(body[i + 2:j] or "0", 16))
            i = j
        elif nxt in "01234567" and nxt:
            j = i + 1
            while j < len(body) and j < i + 4 and body[j] in "01234567":
                j += 1
            values.append(int(body[i + 1:j], 8))
            i = j
        else:
            values.append(_SIMPLE_ESCAPES.get(nxt, ord(nxt) if nxt else 0))
            i += 2
    if not values:
        raise ExpressionError(f"빈 문자 리터럴: {text}")
    result = 0
    for v in values:
        result = (result << 8) | (v & 0xFF if len(values) > 1 else v)
    return result


# =============================================================================
# 평가 노드
# =============================================================================

def _truncating_div(a: Number, b: Number) -> Number:
    if b == 0:
        raise DivisionByZero("0으로 나누기")
    if isinstance(a, float) or isinstance(b, float):
        return a / b
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def _truncating_mod(a: Number, b: Number) -> Number:
    if b == 0:
        raise DivisionByZero("0으로 나머지 연산")
    if isinstance(a, float) or isinstance(b, float):
        raise ExpressionError("부동소수에 % 연산")
    return a - b * _truncating_div(a, b)


def _shift(a: Number, b: Number, left: bool) -> int:
    if isinstance(a, float) or isinstance(b, float):
        raise ExpressionError("부동소수에 시프트 연산")
    if b < 0:
        raise ExpressionError("음수 시프트")
    return a << b if left else a >> b


def _bitwise(op):
    def apply(a: Number, b: Number) -> int:
        if isinstance(a, float) or isinstance(b, float):
            raise ExpressionError("부동소수에 비트 연산")
        return op(a, b)
    return apply


_BINARY_OPERATORS = {
    "*": lambda a, b: a * b,
    "/": _truncating_div,
    "%": _truncating_mod,
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "<<": lambda a, b: _shift(a, b, True),
    ">>": lambda a, b: _shift(a, b, False),
    "<": lambda a, b: int(a < b),
    "<=": lambda a, b: int(a <= b),
    ">": lambda a, b: int(a > b),
    ">=": lambda a, b: int(a >= b),
    "==": lambda a, b: int(a == b),
    "!=": lambda a, b: int(a != b),
    "&": _bitwise(lambda a, b: a & b),
    "^": _bitwise(lambda a, b: a ^ b),
    "|": _bitwise(lambda a, b: a | b),
}


class _Literal:
    def __init__(self, tokens):
        self.value = tokens[0]

    def evaluate(self) -> Number:
        return self.value


class _Unary:
    def __init__(self, tokens):
        self.op, self.operand = tokens[0][0], tokens[0][1]

    def evaluate(self) -> Number:
        value = self.operand.evaluate()
        if self.op == "!":
            return int(not value)
        if self.op == "-":
            return -value
        if self.op == "~":
            if isinstance(value, float):
                raise ExpressionError("부동소수에 ~ 연산")
            return ~value
        return +value


class _Binary:
    """같은 우선순위의 왼쪽 결합 연산 묶음 [a, op, b, op, c ...]"""

    def __init__(self, tokens):
        group = tokens[0]
        self.first = group[0]
        self.rest = [(group[i], group[i + 1]) for i in range(1, len(group), 2)]

    def evaluate(self) -> Number:
        value = self.first.evaluate()
        for op, operand in self.rest:
            if op == "&&":
                value = int(bool(value) and bool(operand.evaluate()))
            elif op == "||":
                value = int(bool(value) or bool(operand.evaluate()))
            else:
                value = _BINARY_OPERATORS[op](value, operand.evaluate())
        return value


class _Ternary:
    def __init__(self, tokens):
        group = tokens[0]
        self.condition, self.if_true, self.if_false = group[0], group[2], group[4]

    def evaluate(self) -> Number:
        if self.condition.evaluate():
            return self.if_true.evaluate()
        return self.if_false.evaluate()


# =============================================================================
# 평가기
# =============================================================================

class ConstantExpressionEvaluator:
    """
    C 상수식 평가기

    Args:
        allow_float: 부동소수 리터럴 허용 여부 (#if 에서는 허용하지 않음)

    사용 예:
        evaluator = ConstantExpressionEvaluator()
        evaluator.evaluate("(1 << 4) + 2")  # 18
    """

    def __init__(self, allow_float: bool = False):
        self.allow_float = allow_float
        self._setup_grammar()

    def _setup_grammar(self):
        """pyparsing 문법 규칙 설정"""
        integer = Regex(r"(?:0[xX][0-9A-Fa-f]+|0[bB][01]+|[0-9]+)[uUlL]*(?![\w.])")
        integer.set_parse_action(lambda t: parse_integer_literal(t[0]))

        char = Regex(r"(?:u8|[LuU])?'(?:\\.|[^'\\\n])+'")
        char.set_parse_action(lambda t: char_literal_value(t[0]))

        operand = integer | char
        if self.allow_float:
            floating = Regex(
                r"(?:[0-9]*\.[0-9]+(?:[eE][+-]?[0-9]+)?|[0-9]+\.(?:[eE][+-]?[0-9]+)?"
                r"|[0-9]+[eE][+-]?[0-9]+)[fFlL]?"
            )
            floating.set_parse_action(lambda t: parse_float_literal(t[0]))
            operand = floating | operand
        operand = operand.copy().add_parse_action(_Literal)

        self.grammar = infix_notation(
            operand,
            [
                (one_of("! ~ + -"), 1, OpAssoc.RIGHT, _Unary),
                (one_of("* / %"), 2, OpAssoc.LEFT, _Binary),
                (one_of("+ -"), 2, OpAssoc.LEFT, _Binary),
                (one_of("<< >>"), 2, OpAssoc.LEFT, _Binary),
                (one_of("< <= > >="), 2, OpAssoc.LEFT, _Binary),
                (one_of("== !="), 2, OpAssoc.LEFT, _Binary),
                (Regex(r"&(?!&)"), 2, OpAssoc.LEFT, _Binary),
                ("^", 2, OpAssoc.LEFT, _Binary),
                (Regex(r"\|(?!\|)"), 2, OpAssoc.LEFT, _Binary),
                ("&&", 2, OpAssoc.LEFT, _Binary),
                ("||", 2, OpAssoc.LEFT, _Binary),
                (("?", ":"), 3, OpAssoc.RIGHT, _Ternary),
            ],
        )

    def evaluate(self, expression: str) -> Number:
        """
        상수식 문자열 평가

        Raises:
            ExpressionError: 문법 오류, 해석되지 않은 식별자
            DivisionByZero: 0으로 나누기/나머지
        """
        if not expression or not expression.strip():
            raise ExpressionError("빈 상수식")
        try:
            tree = self.grammar.parse_string(expression, parse_all=True)[0]
        except ParseBaseException as e:
            raise ExpressionError(f"잘못된 상수식: {expression!r} ({e.msg})") from e
        except RecursionError as e:
            raise ExpressionError(f"상수식 괄호 중첩이 너무 깊습니다 ({len(expression)}자)") from e
        try:
            value = tree.evaluate()
        except RecursionError as e:
            raise ExpressionError(f"상수식 중첩이 너무 깊습니다 ({len(expression)}자)") from e
        logger.trace(f"상수식 평가: {expression!r} = {value}")
        return value


def expression_text(tokens: Iterable[Token]) -> str:
    """토큰 경계를 유지하도록 공백으로 이어 붙인 식 텍스트"""
    return " ".join(tok.text for tok in tokens)


_INTEGER_EVALUATOR = None
_FLOAT_EVALUATOR = None


def evaluate_expression(expression: str, allow_float: bool = False) -> Number:
    """공유 평가기로 상수식을 평가하는 편의 함수"""
    global _INTEGER_EVALUATOR, _FLOAT_EVALUATOR
    if allow_float:
        if _FLOAT_EVALUATOR is None:
            _FLOAT_EVALUATOR = ConstantExpressionEvaluator(allow_float=True)
        return _FLOAT_EVALUATOR.evaluate(expression)
    if _INTEGER_EVALUATOR is None:
        _INTEGER_EVALUATOR = ConstantExpressionEvaluator()
    return _INTEGER_EVALUATOR.evaluate(expression)
