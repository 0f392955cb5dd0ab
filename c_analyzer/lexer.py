"""
C 렉서 모듈

원본 텍스트를 소스 위치가 붙은 전처리 토큰 스트림으로 변환합니다.
지시문 판별을 위해 각 토큰에 at_line_start / leading_space 플래그를 기록하며,
개행 토큰은 만들지 않습니다.
"""
from bisect import bisect_right
from typing import Iterator, List, Optional

from shared_config import C_KEYWORDS

from .diagnostics import DiagnosticKind, DiagnosticSink
from .patterns import (
    DIGRAPHS,
    PATTERN_COMMENT_LINE,
    PATTERN_HSPACE,
    PATTERN_IDENTIFIER,
    PATTERN_LINE_SPLICE,
    PATTERN_LITERAL_PREFIX,
    PATTERN_PP_NUMBER,
    PATTERN_PUNCTUATOR,
)
from .tokens import SourceSpan, Token, TokenKind


class Lexer:
    """
    단일 번역 단위용 렉서

    상태는 인스턴스 안에만 존재하므로 다시 순회하면 처음부터 다시 토큰화합니다.

    사용 예:
        for tok in Lexer(text, "a.c"):
            print(tok.kind, tok.text)
    """

    def __init__(self, source_text: str, file_id: str, diagnostics: Optional[DiagnosticSink] = None):
        self.text = source_text
        self.file_id = file_id
        self.diagnostics = diagnostics
        # 라인 시작 오프셋 (bisect 로 라인/컬럼 계산)
        self.line_starts: List[int] = [0]
        for i, ch in enumerate(source_text):
            if ch == "\n":
                self.line_starts.append(i + 1)

    def __iter__(self) -> Iterator[Token]:
        return self.tokens()

    # =========================================================================
    # 위치 계산
    # =========================================================================

    def _position(self, offset: int):
        line_index = bisect_right(self.line_starts, offset) - 1
        return line_index + 1, offset - self.line_starts[line_index] + 1

    def span(self, start: int, end: int) -> SourceSpan:
        """[start, end) 오프셋 구간의 SourceSpan"""
        line, column = self._position(start)
        end_line, end_column = self._position(end)
        return SourceSpan(
            file_id=self.file_id,
            line=line,
            column=column,
            end_line=end_line,
            end_column=end_column,
            offset=start,
            length=end - start,
        )

    # =========================================================================
    # 토큰화
    # =========================================================================

    def tokens(self) -> Iterator[Token]:
        text = self.text
        length = len(text)
        pos = 0
        at_line_start = True
        leading_space = False

        while pos < length:
            ch = text[pos]

            # 공백 / 개행 / 라인 연결
            if ch == "\n":
                pos += 1
                at_line_start = True
                leading_space = False
                continue
            m = PATTERN_HSPACE.match(text, pos)
            if m:
                pos = m.end()
                leading_space = True
                continue
            if ch == "\\":
                m = PATTERN_LINE_SPLICE.match(text, pos)
                if m:
                    pos = m.end()
                    leading_space = True
                    continue

            # 주석
            if text.startswith("//", pos):
                m = PATTERN_COMMENT_LINE.match(text, pos)
                end = m.end()
                yield Token(TokenKind.COMMENT, text[pos:end], self.span(pos, end),
                            at_line_start, leading_space)
                pos = end
                leading_space = True
                continue
            if text.startswith("/*", pos):
                end = text.find("*/", pos + 2)
                if end < 0:
                    span = self.span(pos, length)
                    if self.diagnostics is not None:
                        # 치명적 진단: 나머지 전체를 주석이 삼킴
                        self.diagnostics.fatal(
                            DiagnosticKind.LEXICAL_ERROR, "종료되지 않은 블록 주석", span
                        )
                    yield Token(TokenKind.COMMENT, text[pos:], span, at_line_start, leading_space)
                    return
                end += 2
                yield Token(TokenKind.COMMENT, text[pos:end], self.span(pos, end),
                            at_line_start, leading_space)
                pos = end
                leading_space = True
                continue

            # 문자열/문자 리터럴 (접두사 포함)
            prefix = PATTERN_LITERAL_PREFIX.match(text, pos)
            if ch in "\"'" or prefix:
                start = pos
                if prefix:
                    pos = prefix.end()
                tok_end = self._scan_literal(pos)
                kind = TokenKind.STRING if text[pos] == '"' else TokenKind.CHAR
                yield Token(kind, text[start:tok_end], self.span(start, tok_end),
                            at_line_start, leading_space)
                pos = tok_end
                at_line_start = False
                leading_space = False
                continue

            # 식별자 / 키워드
            m = PATTERN_IDENTIFIER.match(text, pos)
            if m:
                word = m.group()
                kind = TokenKind.KEYWORD if word in C_KEYWORDS else TokenKind.IDENTIFIER
                yield Token(kind, word, self.span(pos, m.end()), at_line_start, leading_space)
                pos = m.end()
                at_line_start = False
                leading_space = False
                continue

            # pp-number
            m = PATTERN_PP_NUMBER.match(text, pos)
            if m:
                yield Token(TokenKind.NUMBER, m.group(), self.span(pos, m.end()),
                            at_line_start, leading_space)
                pos = m.end()
                at_line_start = False
                leading_space = False
                continue

            # 구두점 (다이그래프는 표준 철자로)
            m = PATTERN_PUNCTUATOR.match(text, pos)
            if m:
                spelling = DIGRAPHS.get(m.group(), m.group())
                yield Token(TokenKind.PUNCTUATOR, spelling, self.span(pos, m.end()),
                            at_line_start, leading_space)
                pos = m.end()
                at_line_start = False
                leading_space = False
                continue

            # 인식할 수 없는 문자
            span = self.span(pos, pos + 1)
            if self.diagnostics is not None:
                self.diagnostics.error(
                    DiagnosticKind.LEXICAL_ERROR, f"인식할 수 없는 문자: {ch!r}", span
                )
            yield Token(TokenKind.UNRECOGNIZED, ch, span, at_line_start, leading_space)
            pos += 1
            at_line_start = False
            leading_space = False

    def _scan_literal(self, pos: int) -> int:
        """
        따옴표 위치에서 시작하는 리터럴의 끝 오프셋 반환

        종료되지 않은 리터럴은 진단을 남기고 라인 끝에서 닫습니다.
        """
        text = self.text
        quote = text[pos]
        i = pos + 1
        length = len(text)
        while i < length:
            c = text[i]
            if c == "\\":
                m = PATTERN_LINE_SPLICE.match(text, i)
                i = m.end() if m else i + 2
                continue
            if c == quote:
                return i + 1
            if c == "\n":
                break
            i += 1

        end = min(i, length)
        if self.diagnostics is not None:
            what = "문자열" if quote == '"' else "문자"
            self.diagnostics.error(
                DiagnosticKind.LEXICAL_ERROR,
                f"종료되지 않은 {what} 리터럴",
                self.span(pos, end),
            )
        return end


def tokenize(source_text: str, file_id: str, diagnostics: Optional[DiagnosticSink] = None) -> Iterator[Token]:
    """
    소스 텍스트를 토큰화하는 지연 제너레이터

    diagnostics 가 없으면 어떤 입력에서도 예외를 발생시키지 않습니다.
    diagnostics 가 주어지면 종료되지 않은 블록 주석에서 TranslationUnitAborted 가 전파됩니다.

    Args:
        source_text: 번역 단위 텍스트
        file_id: 소스 위치에 기록할 파일 식별자
        diagnostics: 어휘 오류를 기록할 진단 수집기

    Returns:
        Token 이터레이터
    """
    return Lexer(source_text, file_id, diagnostics).tokens()
