"""
테스트 후보 추출기

엔티티 그래프에서 단위 테스트 생성 대상이 될 수 있는 함수와 매크로를 골라
정규화된 시그니처와 함께 소스 등장 순서로 반환합니다.

- FUNCTION: 반환/파라미터 타입이 모두 해석되는 함수
- MACRO_CONSTANT: 숫자처럼 보이는 본문의 객체형 매크로 (값 계산)
- MACRO_FUNCTION: 본문에 ';' 와 대입 연산자가 없는 함수형 매크로
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from shared_config.logger import LogStage, logger

from .declarations import FunctionDecl
from .entity_graph import EntityGraph
from .expression import ExpressionError, evaluate_expression, expression_text
from .macros import DefinitionType, MacroDefinition
from .tokens import SourceSpan, TokenKind
from .type_descriptors import TypeDescriptor

# 함수형 매크로 본문에 있으면 후보에서 제외하는 연산자
SIDE_EFFECT_OPERATORS = frozenset({
    ";", "=", "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "<<=", ">>=", "++", "--",
})


class CandidateKind(Enum):
    """테스트 후보 종류"""
    FUNCTION = "function"
    MACRO_CONSTANT = "macro_constant"
    MACRO_FUNCTION = "macro_function"


@dataclass
class CandidateParameter:
    """후보 함수의 파라미터 (선언 타입과 typedef 해석 타입)"""
    name: Optional[str]
    type: TypeDescriptor
    resolved_type: TypeDescriptor

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.spelling,
            "resolved_type": self.resolved_type.spelling,
        }


@dataclass
class TestCandidate:
    """
    테스트 대상 후보

    Attributes:
        kind: 후보 종류
        name: 함수/매크로 이름
        span: 처음 등장한 위치
        signature: 선언된 타입 그대로의 정규화 시그니처
        canonical_signature: typedef 를 해석한 시그니처 (함수만)
        parameters: 함수 파라미터 (함수만)
        macro_params: 매크로 파라미터 이름 (함수형 매크로만)
        value: 매크로 상수 값 (계산할 수 없으면 None)
        body: 매크로 본문 텍스트
    """
    __test__ = False  # pytest 수집 대상 아님

    kind: CandidateKind
    name: str
    span: SourceSpan
    signature: str
    canonical_signature: Optional[str] = None
    return_type: Optional[TypeDescriptor] = None
    resolved_return_type: Optional[TypeDescriptor] = None
    parameters: List[CandidateParameter] = field(default_factory=list)
    has_body: bool = False
    is_static: bool = False
    is_variadic: bool = False
    docstring: Optional[str] = None
    macro_params: List[str] = field(default_factory=list)
    value: Optional[Union[int, float]] = None
    body: Optional[str] = None

    @property
    def line(self) -> int:
        return self.span.line

    @property
    def column(self) -> int:
        return self.span.column

    @property
    def is_function(self) -> bool:
        return self.kind == CandidateKind.FUNCTION

    @property
    def is_macro(self) -> bool:
        return self.kind != CandidateKind.FUNCTION

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "kind": self.kind.value,
            "name": self.name,
            "span": self.span.to_dict(),
            "signature": self.signature,
        }
        if self.is_function:
            d.update({
                "canonical_signature": self.canonical_signature,
                "return_type": self.return_type.spelling,
                "resolved_return_type": self.resolved_return_type.spelling,
                "parameters": [p.to_dict() for p in self.parameters],
                "has_body": self.has_body,
                "is_static": self.is_static,
                "is_variadic": self.is_variadic,
                "docstring": self.docstring,
            })
        else:
            d.update({
                "macro_params": list(self.macro_params),
                "value": self.value,
                "body": self.body,
            })
        return d


def _first_appearance(decl: FunctionDecl) -> SourceSpan:
    spans = [decl.name_span or decl.span] + list(decl.forward_spans)
    return min(spans, key=lambda s: (s.line, s.column))


def canonical_signature(graph: EntityGraph, decl: FunctionDecl) -> str:
    """typedef 를 끝까지 해석한 타입으로 만든 시그니처"""
    params = [graph.resolve(p.type).to_c(p.name or "") for p in decl.parameters]
    if decl.is_variadic:
        params.append("...")
    declarator = f"{decl.name}({', '.join(params) or 'void'})"
    return graph.resolve(decl.return_type).to_c(declarator)


def function_candidate(graph: EntityGraph, decl: FunctionDecl) -> Optional[TestCandidate]:
    """해석되지 않는 타입이 있으면 None"""
    resolved_return = graph.resolve(decl.return_type)
    params = [CandidateParameter(p.name, p.type, graph.resolve(p.type)) for p in decl.parameters]
    if resolved_return.contains_unresolved() or any(p.resolved_type.contains_unresolved() for p in params):
        logger.debug(f"후보 제외 (해석되지 않은 타입): {decl.name}")
        return None

    return TestCandidate(
        kind=CandidateKind.FUNCTION,
        name=decl.name,
        span=_first_appearance(decl),
        signature=decl.signature(),
        canonical_signature=canonical_signature(graph, decl),
        return_type=decl.return_type,
        resolved_return_type=resolved_return,
        parameters=params,
        has_body=decl.has_body,
        is_static=decl.is_static,
        is_variadic=decl.is_variadic,
        docstring=decl.docstring,
    )


def is_pure_macro_function(macro: MacroDefinition) -> bool:
    """본문이 있고 ';' 나 대입/증감 연산자가 없는 함수형 매크로인지"""
    if not macro.is_function_like or not macro.body:
        return False
    return not any(tok.kind == TokenKind.PUNCTUATOR and tok.text in SIDE_EFFECT_OPERATORS for tok in macro.body)


def macro_candidate(macro: MacroDefinition) -> Optional[TestCandidate]:
    if macro.is_function_like:
        if not is_pure_macro_function(macro):
            return None
        return TestCandidate(
            kind=CandidateKind.MACRO_FUNCTION,
            name=macro.name,
            span=macro.span,
            signature=macro.signature(),
            macro_params=list(macro.params),
            body=macro.body_text,
        )

    if macro.definition_type != DefinitionType.CONSTANT:
        return None
    try:
        value = evaluate_expression(expression_text(macro.body), allow_float=True)
    except ExpressionError as e:
        logger.debug(f"매크로 상수 값 계산 불가: {macro.name} ({e})")
        value = None
    return TestCandidate(
        kind=CandidateKind.MACRO_CONSTANT,
        name=macro.name,
        span=macro.span,
        signature=macro.signature(),
        value=value,
        body=macro.body_text,
    )


def extract_candidates(
    graph: EntityGraph,
    file_id: Optional[str] = None,
    require_body: bool = False,
) -> List[TestCandidate]:
    """
    엔티티 그래프에서 테스트 후보 추출

    Args:
        graph: 엔티티 그래프
        file_id: 이 파일에서 정의된 매크로만 후보로 삼음 (기본: graph.file_id)
        require_body: True 면 본문이 있는 함수만 후보

    Returns:
        (라인, 컬럼) 순으로 정렬된 후보 목록
    """
    file_id = file_id or graph.file_id
    candidates: List[TestCandidate] = []

    with LogStage("테스트 후보 추출", file=file_id):
        for decl in graph.functions():
            if require_body and not decl.has_body:
                continue
            candidate = function_candidate(graph, decl)
            if candidate is not None:
                candidates.append(candidate)

        for macro in graph.macros:
            if macro.is_predefined or macro.file_id != file_id or macro.is_system:
                continue
            candidate = macro_candidate(macro)
            if candidate is not None:
                candidates.append(candidate)

        candidates.sort(key=lambda c: (c.line, c.column))

    logger.debug(
        f"테스트 후보 {len(candidates)}개 "
        f"(함수 {sum(c.is_function for c in candidates)}, 매크로 {sum(c.is_macro for c in candidates)})"
    )
    return candidates
