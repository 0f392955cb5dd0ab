"""
매크로 정의와 매크로 테이블

#define 지시문 파싱, 재정의 규칙, 정의 유형 분류(상수/문자열/식/플래그/함수형)를 담당합니다.
실제 확장은 expansion.MacroExpander 가 수행합니다.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from shared_config.logger import logger
from shared_config.naming_rules import is_system_macro

from .diagnostics import DiagnosticKind, DiagnosticSink
from .lexer import tokenize
from .patterns import PATTERN_FLOAT_LITERAL, PATTERN_INTEGER_LITERAL, PATTERN_MACRO_KEY
from .tokens import SourceSpan, Token, TokenKind, tokens_to_text

# 미리 정의된 매크로가 기록되는 가상 파일 이름
PREDEFINED_FILE_ID = "<command-line>"
BUILTIN_FILE_ID = "<built-in>"

VA_ARGS = "__VA_ARGS__"

# 상수 판별 시 허용되는 연산자
_NUMERIC_OPERATORS = frozenset({
    "(", ")", "+", "-", "*", "/", "%", "~", "<<", ">>", "&", "|", "^",
})


class MacroKind(Enum):
    """매크로 형태"""
    OBJECT_LIKE = "object_like"
    FUNCTION_LIKE = "function_like"


class DefinitionType(Enum):
    """매크로 본문 분류"""
    CONSTANT = "Constant"             # 숫자 리터럴 또는 숫자 상수식
    STRING = "String"                 # 문자열 리터럴
    EXPRESSION = "Expression"         # 그 밖의 본문
    FLAG = "Flag"                     # 빈 본문 (#define DEBUG)
    FUNCTION_MACRO = "FunctionMacro"  # 함수형 매크로


def is_numeric_literal(text: str) -> bool:
    return bool(PATTERN_INTEGER_LITERAL.match(text) or PATTERN_FLOAT_LITERAL.match(text))


def is_numeric_body(tokens: Sequence[Token]) -> bool:
    """
    숫자처럼 보이는 본문인지 확인

    숫자 리터럴과 괄호, 단항 부호, 산술/비트 연산자로만 이루어져야 합니다.

    Examples:
        100          -> True
        (-1)         -> True
        (1 << 4)     -> True
        3.14159      -> True
        "1.0.0"      -> False
        (a + 1)      -> False
    """
    has_number = False
    for tok in tokens:
        if tok.kind == TokenKind.NUMBER:
            if not is_numeric_literal(tok.text):
                return False
            has_number = True
        elif tok.kind == TokenKind.PUNCTUATOR and tok.text in _NUMERIC_OPERATORS:
            continue
        else:
            return False
    return has_number


@dataclass
class MacroDefinition:
    """
    매크로 정의

    Attributes:
        name: 매크로 이름
        kind: 객체형/함수형
        params: 파라미터 이름 (가변 인자는 __VA_ARGS__ 또는 GNU 명명 가변 인자)
        is_variadic: 가변 인자 여부
        body: 치환 토큰
        span: 정의 위치 (이름 토큰 기준)
        definition_type: 본문 분류
        body_text: 본문 텍스트 (공백 정규화)
    """
    name: str
    kind: MacroKind
    params: Tuple[str, ...] = ()
    is_variadic: bool = False
    body: Tuple[Token, ...] = ()
    span: Optional[SourceSpan] = None
    definition_type: DefinitionType = field(init=False)
    body_text: str = field(init=False)

    def __post_init__(self):
        self.body_text = tokens_to_text(self.body)
        if self.kind == MacroKind.FUNCTION_LIKE:
            self.definition_type = DefinitionType.FUNCTION_MACRO
        elif not self.body:
            self.definition_type = DefinitionType.FLAG
        elif len(self.body) == 1 and self.body[0].kind == TokenKind.STRING:
            self.definition_type = DefinitionType.STRING
        elif is_numeric_body(self.body):
            self.definition_type = DefinitionType.CONSTANT
        else:
            self.definition_type = DefinitionType.EXPRESSION

    @property
    def is_function_like(self) -> bool:
        return self.kind == MacroKind.FUNCTION_LIKE

    @property
    def file_id(self) -> Optional[str]:
        return self.span.file_id if self.span else None

    @property
    def is_predefined(self) -> bool:
        """분석 대상 파일 밖(명령행/내장)에서 정의되었는지"""
        return self.file_id in (PREDEFINED_FILE_ID, BUILTIN_FILE_ID)

    @property
    def is_system(self) -> bool:
        return is_system_macro(self.name)

    def same_definition(self, other: "MacroDefinition") -> bool:
        """
        동일 정의 여부 (이름, 형태, 파라미터, 본문 철자와 공백 구분이 같아야 함)
        """
        if (self.name, self.kind, self.params, self.is_variadic) != \
                (other.name, other.kind, other.params, other.is_variadic):
            return False
        if len(self.body) != len(other.body):
            return False
        for i, (a, b) in enumerate(zip(self.body, other.body)):
            if a.text != b.text:
                return False
            if i > 0 and a.leading_space != b.leading_space:
                return False
        return True

    def referenced_names(self) -> List[str]:
        """본문에서 참조하는 식별자 (파라미터 제외, 등장 순서, 중복 제거)"""
        names = []
        for tok in self.body:
            if tok.is_name() and tok.text not in self.params and tok.text not in names:
                names.append(tok.text)
        return names

    def signature(self) -> str:
        if not self.is_function_like:
            return self.name
        params = list(self.params)
        if self.is_variadic and params and params[-1] == VA_ARGS:
            params[-1] = "..."
        elif self.is_variadic and params:
            params[-1] = params[-1] + "..."
        return f"{self.name}({', '.join(params)})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "params": list(self.params),
            "is_variadic": self.is_variadic,
            "definition_type": self.definition_type.value,
            "body": self.body_text,
            "span": self.span.to_dict() if self.span else None,
        }


@dataclass(frozen=True)
class MacroUsage:
    """
    매크로 확장 위치

    Attributes:
        name: 확장된 매크로 이름
        span: 호출 위치 (다른 매크로 본문 안이면 바깥 호출 위치)
        via: 본문을 통해 간접 확장되었을 때 가장 바깥쪽 매크로 이름
    """
    name: str
    span: SourceSpan
    via: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {"name": self.name, "span": self.span.to_dict()}
        if self.via:
            d["via"] = self.via
        return d


class MacroTable:
    """
    번역 단위 하나의 매크로 테이블

    - 동일한 재정의는 아무 일도 하지 않음
    - 다른 재정의는 MacroError (치명적이지 않음), 가장 최근 정의가 유효
    - 정의되지 않은 이름의 #undef 는 무시
    """

    def __init__(self, diagnostics: Optional[DiagnosticSink] = None):
        self.diagnostics = diagnostics
        self._macros: Dict[str, MacroDefinition] = {}
        self._usages: Dict[str, List[MacroUsage]] = {}

    def define(self, macro: MacroDefinition) -> MacroDefinition:
        existing = self._macros.get(macro.name)
        if existing is not None:
            if existing.same_definition(macro):
                return existing
            if self.diagnostics is not None:
                self.diagnostics.error(
                    DiagnosticKind.MACRO_ERROR,
                    f"매크로 재정의 충돌: {macro.name}",
                    macro.span,
                )
            # 재정의는 정의 순서상 뒤로 이동
            del self._macros[macro.name]
        self._macros[macro.name] = macro
        logger.trace(f"매크로 정의: {macro.signature()}")
        return macro

    def undefine(self, name: str) -> bool:
        if name in self._macros:
            del self._macros[name]
            logger.trace(f"매크로 해제: {name}")
            return True
        return False

    def get(self, name: str) -> Optional[MacroDefinition]:
        return self._macros.get(name)

    def is_defined(self, name: str) -> bool:
        return name in self._macros

    def names(self) -> List[str]:
        return list(self._macros)

    def __contains__(self, name: str) -> bool:
        return name in self._macros

    def __iter__(self) -> Iterator[MacroDefinition]:
        return iter(list(self._macros.values()))

    def __len__(self) -> int:
        return len(self._macros)

    def record_usage(self, name: str, span: SourceSpan, via: Optional[str] = None) -> MacroUsage:
        usage = MacroUsage(name, span, via)
        self._usages.setdefault(name, []).append(usage)
        return usage

    def usages(self, name: str) -> List[MacroUsage]:
        """확장 순서대로 기록된 사용 위치 (#undef 이후에도 유지)"""
        return list(self._usages.get(name, ()))

    def used_names(self) -> List[str]:
        return list(self._usages)

    def to_dict(self) -> Dict[str, Any]:
        return {name: m.to_dict() for name, m in self._macros.items()}


# =============================================================================
# #define 파싱
# =============================================================================

def parse_define(
    tokens: Sequence[Token],
    diagnostics: Optional[DiagnosticSink] = None,
    anchor: Optional[SourceSpan] = None,
) -> Optional[MacroDefinition]:
    """
    #define 뒤의 토큰으로 MacroDefinition 생성

    함수형 매크로는 이름 바로 뒤(공백 없이) '(' 가 와야 합니다.

    Args:
        tokens: 'define' 다음 토큰들 (주석 제외)
        diagnostics: 오류 기록용
        anchor: 이름이 없을 때 진단 위치

    Returns:
        정의, 형식 오류면 None
    """
    def fail(message: str, span: Optional[SourceSpan]) -> None:
        if diagnostics is not None:
            diagnostics.error(DiagnosticKind.MACRO_ERROR, message, span)
        return None

    if not tokens or not tokens[0].is_name():
        return fail("#define 뒤에 매크로 이름이 필요합니다", tokens[0].span if tokens else anchor)

    name_tok = tokens[0]
    if name_tok.text == "defined":
        return fail("'defined' 는 매크로 이름으로 사용할 수 없습니다", name_tok.span)

    index = 1
    kind = MacroKind.OBJECT_LIKE
    params: List[str] = []
    variadic = False

    if index < len(tokens) and tokens[index].is_punct("(") and not tokens[index].leading_space:
        kind = MacroKind.FUNCTION_LIKE
        index += 1
        expect_param = True
        closed = False
        while index < len(tokens):
            tok = tokens[index]
            index += 1
            if tok.is_punct(")") and (not params or not expect_param):
                closed = True
                break
            if not expect_param:
                if tok.is_punct(",") and not variadic:
                    expect_param = True
                    continue
                return fail(f"매크로 파라미터 목록 오류: {name_tok.text}", tok.span)
            if tok.is_punct("..."):
                params.append(VA_ARGS)
                variadic = True
                expect_param = False
                continue
            if tok.is_name() and tok.text not in params:
                params.append(tok.text)
                expect_param = False
                # GNU 명명 가변 인자: name...
                if index < len(tokens) and tokens[index].is_punct("..."):
                    variadic = True
                    index += 1
                continue
            return fail(f"매크로 파라미터 목록 오류: {name_tok.text}", tok.span)
        if not closed:
            return fail(f"매크로 파라미터 목록이 닫히지 않았습니다: {name_tok.text}", name_tok.span)

    body = list(tokens[index:])
    if body:
        body[0] = body[0].with_changes(leading_space=False)
        if body[0].is_punct("##") or body[-1].is_punct("##"):
            return fail(f"'##' 는 매크로 본문 양 끝에 올 수 없습니다: {name_tok.text}", name_tok.span)
        if kind == MacroKind.FUNCTION_LIKE:
            for i, tok in enumerate(body):
                if tok.is_punct("#") and (i + 1 >= len(body) or body[i + 1].text not in params):
                    return fail(f"'#' 뒤에는 매크로 파라미터가 와야 합니다: {name_tok.text}", tok.span)

    return MacroDefinition(
        name=name_tok.text,
        kind=kind,
        params=tuple(params),
        is_variadic=variadic,
        body=tuple(body),
        span=name_tok.span,
    )


def macro_from_key(key: str, body_text: str, file_id: str = PREDEFINED_FILE_ID) -> Optional[MacroDefinition]:
    """
    "NAME" 또는 "NAME(a, b)" 키와 본문 텍스트로 매크로 정의 생성

    명령행 -D 정의와 설정의 내장 매크로에 사용합니다.

    Examples:
        ("DEBUG", "1")         -> #define DEBUG 1
        ("SQR(x)", "((x)*(x))") -> #define SQR(x) ((x)*(x))
    """
    m = PATTERN_MACRO_KEY.match(key)
    if not m:
        logger.warning(f"잘못된 매크로 키 무시: {key!r}")
        return None
    name, params = m.group(1), m.group(2)
    text = name if params is None else f"{name}({params})"
    text = f"{text} {body_text if body_text is not None else ''}"
    tokens = [t for t in tokenize(text, file_id) if t.kind != TokenKind.COMMENT]
    macro = parse_define(tokens)
    if macro is None:
        logger.warning(f"미리 정의된 매크로 해석 실패: {key!r}")
    return macro


def load_predefined(table: MacroTable, macros: Optional[Mapping[str, str]], file_id: str) -> int:
    """매핑의 매크로를 테이블에 정의하고 정의된 개수 반환 (매핑은 수정하지 않음)"""
    count = 0
    for key, body in (macros or {}).items():
        macro = macro_from_key(key, "" if body is None else str(body), file_id)
        if macro is not None:
            table.define(macro)
            count += 1
    return count
