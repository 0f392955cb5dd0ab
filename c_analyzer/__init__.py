"""
c_analyzer - C 소스 분석 엔진

C 번역 단위 텍스트를 전처리/파싱하여 함수, 매크로, typedef, struct/union/enum,
전역 변수 선언을 구조화된 엔티티 그래프로 만들고 단위 테스트 후보를 추출합니다.

주요 클래스:
- CAnalyzer: 분석 파이프라인 메인 클래스
- AnalysisResult: 번역 단위 분석 결과
- EntityGraph: 선언 레지스트리 (typedef 해석 포함)
- Preprocessor: 매크로 확장 및 조건부 컴파일
- DeclarationParser: 선언 파서

주요 함수:
- analyze: 번역 단위 하나 분석
- analyze_many: 여러 번역 단위 병렬 분석

Example:
    from c_analyzer import analyze

    result = analyze(source_text, "sample.c", {"DEBUG": "1"})
    for candidate in result.candidates:
        print(candidate.signature)
"""

from .core import CAnalyzer, AnalysisResult, analyze, analyze_many
from .config import AnalyzerConfig
from .context import CancellationToken, TranslationUnitContext
from .candidates import CandidateKind, CandidateParameter, TestCandidate, extract_candidates
from .declarations import (
    Declaration,
    DeclarationKind,
    EnumConstantDecl,
    EnumDecl,
    FieldDecl,
    FunctionDecl,
    Parameter,
    RecordDecl,
    TypedefDecl,
    VariableDecl,
)
from .diagnostics import (
    AnalysisCancelled,
    Diagnostic,
    DiagnosticKind,
    Severity,
    TranslationUnitAborted,
)
from .entity_graph import EntityGraph
from .expression import ConstantExpressionEvaluator, ExpressionError, evaluate_expression
from .interfaces import DeclarationEnricherPlugin
from .lexer import Lexer, tokenize
from .macros import DefinitionType, MacroDefinition, MacroKind, MacroTable
from .parser import DeclarationParser, parse_declarations
from .preprocessor import (
    ConditionalDirective,
    ConditionalKind,
    InactiveRegion,
    IncludeDirective,
    Preprocessor,
    PreprocessResult,
)
from .tokens import SourceSpan, Token, TokenKind
from .type_descriptors import TypeDescriptor, TypeKind, TypeTag

# 플러그인 re-export
from .plugins import DocstringEnricherPlugin

__all__ = [
    # 메인 클래스/함수
    "CAnalyzer",
    "AnalysisResult",
    "analyze",
    "analyze_many",
    "AnalyzerConfig",
    "CancellationToken",
    "TranslationUnitContext",

    # 렉서/전처리
    "Lexer",
    "tokenize",
    "Token",
    "TokenKind",
    "SourceSpan",
    "Preprocessor",
    "PreprocessResult",
    "ConditionalKind",
    "ConditionalDirective",
    "InactiveRegion",
    "IncludeDirective",
    "MacroDefinition",
    "MacroKind",
    "MacroTable",
    "DefinitionType",
    "ConstantExpressionEvaluator",
    "ExpressionError",
    "evaluate_expression",

    # 선언
    "DeclarationParser",
    "parse_declarations",
    "Declaration",
    "DeclarationKind",
    "FunctionDecl",
    "VariableDecl",
    "TypedefDecl",
    "RecordDecl",
    "FieldDecl",
    "EnumDecl",
    "EnumConstantDecl",
    "Parameter",
    "TypeDescriptor",
    "TypeKind",
    "TypeTag",

    # 그래프/후보
    "EntityGraph",
    "TestCandidate",
    "CandidateKind",
    "CandidateParameter",
    "extract_candidates",

    # 진단
    "Diagnostic",
    "DiagnosticKind",
    "Severity",
    "TranslationUnitAborted",
    "AnalysisCancelled",

    # 인터페이스/플러그인
    "DeclarationEnricherPlugin",
    "DocstringEnricherPlugin",
]
