"""
토큰 및 소스 위치 타입 정의 모듈

렉서가 생성하고 전처리기/파서가 소비하는 불변 토큰을 정의합니다.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional


class TokenKind(Enum):
    """토큰 종류"""
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    NUMBER = "number"
    CHAR = "char"
    STRING = "string"
    PUNCTUATOR = "punctuator"
    COMMENT = "comment"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class SourceSpan:
    """
    소스 영역 (파일, 시작/끝 라인과 컬럼, 문자 오프셋과 길이)

    라인/컬럼은 1부터 시작하며 end_column 은 마지막 문자 다음 위치입니다.
    """
    file_id: str
    line: int
    column: int
    end_line: int
    end_column: int
    offset: int = 0
    length: int = 0

    def merge(self, other: "SourceSpan") -> "SourceSpan":
        """두 영역을 모두 덮는 영역 반환"""
        first = self if self.offset <= other.offset else other
        end_offset = max(self.offset + self.length, other.offset + other.length)
        end = self if self.offset + self.length >= other.offset + other.length else other
        return SourceSpan(
            file_id=first.file_id,
            line=first.line,
            column=first.column,
            end_line=end.end_line,
            end_column=end.end_column,
            offset=first.offset,
            length=end_offset - first.offset,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_id": self.file_id,
            "line": self.line,
            "column": self.column,
            "end_line": self.end_line,
            "end_column": self.end_column,
            "offset": self.offset,
            "length": self.length,
        }


@dataclass(frozen=True)
class Token:
    """
    전처리 토큰

    Attributes:
        kind: 토큰 종류
        text: 원본 텍스트
        span: 토큰이 유래한 소스 영역 (매크로 확장 결과는 호출 위치)
        at_line_start: 논리 라인의 첫 토큰 여부 (지시문 판별용)
        leading_space: 앞에 공백이 있었는지 여부 (함수형 매크로 정의 판별, 문자열화)
        hide_set: 이 토큰을 만들어낸 매크로 이름 집합 (재확장 금지)
        expanded_from: 가장 바깥쪽 매크로 이름
    """
    kind: TokenKind
    text: str
    span: SourceSpan
    at_line_start: bool = False
    leading_space: bool = False
    hide_set: FrozenSet[str] = field(default_factory=frozenset)
    expanded_from: Optional[str] = None

    @property
    def line(self) -> int:
        return self.span.line

    @property
    def column(self) -> int:
        return self.span.column

    def is_punct(self, text: str) -> bool:
        return self.kind == TokenKind.PUNCTUATOR and self.text == text

    def is_name(self) -> bool:
        """식별자 또는 키워드 (전처리 단계에서는 둘 다 이름으로 취급)"""
        return self.kind in (TokenKind.IDENTIFIER, TokenKind.KEYWORD)

    def with_changes(self, **changes) -> "Token":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "kind": self.kind.value,
            "text": self.text,
            "span": self.span.to_dict(),
        }
        if self.expanded_from:
            d["expanded_from"] = self.expanded_from
        return d

    def __str__(self) -> str:
        return self.text


def tokens_to_text(tokens) -> str:
    """토큰 목록을 공백 정보를 살려 하나의 문자열로 결합"""
    parts = []
    for i, tok in enumerate(tokens):
        if i > 0 and tok.leading_space:
            parts.append(" ")
        parts.append(tok.text)
    return "".join(parts)
