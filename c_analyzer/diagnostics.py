"""
진단(diagnostic) 정의 모듈

분석 중 발견된 문제는 예외가 아닌 Diagnostic 레코드로 기록됩니다.
번역 단위 처리를 중단해야 하는 치명적 진단만 TranslationUnitAborted 로 전파됩니다.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from shared_config.logger import get_logger

from .tokens import SourceSpan


class DiagnosticKind(Enum):
    """진단 분류"""
    LEXICAL_ERROR = "LexicalError"          # 종료되지 않은 리터럴/주석, 알 수 없는 문자
    MACRO_ERROR = "MacroError"              # 재정의 충돌, 확장 깊이 초과, 잘못된 #if 식
    CONDITIONAL_ERROR = "ConditionalError"  # #if/#endif 스택 불균형
    SYNTAX_ERROR = "SyntaxError"            # 해석할 수 없는 선언 (경계까지 건너뜀)
    SEMANTIC_WARNING = "SemanticWarning"    # 충돌하는 중복 선언, typedef 순환
    DIRECTIVE_ERROR = "DirectiveError"      # #error
    DIRECTIVE_WARNING = "DirectiveWarning"  # #warning, 알 수 없는 지시문


class Severity(Enum):
    """진단 심각도"""
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


@dataclass(frozen=True)
class Diagnostic:
    """진단 레코드"""
    kind: DiagnosticKind
    file_id: str
    line: int
    column: int
    message: str
    severity: Severity = Severity.ERROR

    @property
    def is_fatal(self) -> bool:
        return self.severity == Severity.FATAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "file_id": self.file_id,
            "line": self.line,
            "column": self.column,
            "message": self.message,
            "severity": self.severity.value,
        }

    def __str__(self) -> str:
        return f"{self.file_id}:{self.line}:{self.column}: {self.kind.value}: {self.message}"


class TranslationUnitAborted(Exception):
    """치명적 진단으로 현재 번역 단위 처리를 중단할 때 사용"""

    def __init__(self, diagnostic: Diagnostic):
        super().__init__(str(diagnostic))
        self.diagnostic = diagnostic


class AnalysisCancelled(Exception):
    """호출자가 취소를 요청했을 때 선언/지시문 경계에서 발생"""


class DiagnosticSink:
    """
    번역 단위 하나의 진단 수집기

    기록 순서를 유지하며, 치명적 진단은 기록 후 TranslationUnitAborted 를 발생시킵니다.
    """

    def __init__(self, file_id: str):
        self.file_id = file_id
        self._items: List[Diagnostic] = []
        self._log = get_logger("diagnostics", unit=file_id)

    def report(
        self,
        kind: DiagnosticKind,
        message: str,
        span: Optional[SourceSpan] = None,
        severity: Severity = Severity.ERROR,
        line: int = 0,
        column: int = 0,
    ) -> Diagnostic:
        """
        진단 기록

        Args:
            kind: 진단 분류
            message: 메시지
            span: 위치 (없으면 line/column 사용)
            severity: 심각도
            line, column: span 이 없을 때의 위치

        Returns:
            기록된 Diagnostic

        Raises:
            TranslationUnitAborted: severity 가 FATAL 인 경우
        """
        diagnostic = Diagnostic(
            kind=kind,
            file_id=span.file_id if span else self.file_id,
            line=span.line if span else line,
            column=span.column if span else column,
            message=message,
            severity=severity,
        )
        self._items.append(diagnostic)

        if severity == Severity.WARNING:
            self._log.debug(f"진단 기록: {diagnostic}")
        else:
            self._log.warning(f"진단 기록: {diagnostic}")

        if diagnostic.is_fatal:
            raise TranslationUnitAborted(diagnostic)
        return diagnostic

    def warning(self, kind: DiagnosticKind, message: str, span: Optional[SourceSpan] = None) -> Diagnostic:
        return self.report(kind, message, span, Severity.WARNING)

    def error(self, kind: DiagnosticKind, message: str, span: Optional[SourceSpan] = None) -> Diagnostic:
        return self.report(kind, message, span, Severity.ERROR)

    def fatal(self, kind: DiagnosticKind, message: str, span: Optional[SourceSpan] = None) -> Diagnostic:
        return self.report(kind, message, span, Severity.FATAL)

    @property
    def items(self) -> List[Diagnostic]:
        return list(self._items)

    def of_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [d for d in self._items if d.kind == kind]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)
