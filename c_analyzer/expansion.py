"""
매크로 확장 모듈

hide set 기반 재스캔 방식으로 토큰 스트림의 매크로를 확장합니다.

- 객체형: 본문 토큰의 hide set = 호출 토큰 hide set ∪ {이름}
- 함수형: 본문 토큰의 hide set = (이름 토큰 hide set ∩ 닫는 괄호 hide set) ∪ {이름}
- 자기 이름이 hide set 에 있는 토큰은 다시 확장되지 않으므로
  이미 확장된 결과를 다시 확장해도 결과가 바뀌지 않습니다.
"""
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence, Tuple

from shared_config.logger import logger

from .diagnostics import DiagnosticKind, DiagnosticSink
from .lexer import tokenize
from .macros import MacroDefinition, MacroTable
from .tokens import SourceSpan, Token, TokenKind

DEFAULT_MAX_DEPTH = 4096

# 사용 위치에 따라 값이 달라지는 내장 매크로
DYNAMIC_MACROS = frozenset({"__LINE__", "__FILE__"})


class _Placemarker:
    """빈 인자가 ## 피연산자일 때 자리를 지키는 표식"""

    def __repr__(self) -> str:
        return "<placemarker>"


PLACEMARKER = _Placemarker()


def _escape_literal(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def stringize(tokens: Sequence[Token], span: SourceSpan) -> Token:
    """
    '#' 연산자: 인자 토큰을 문자열 리터럴 하나로 변환

    토큰 사이 공백은 한 칸으로 줄이고, 문자열/문자 리터럴 안의 역슬래시와 큰따옴표는 이스케이프합니다.
    """
    parts = []
    for i, tok in enumerate(tokens):
        if i > 0 and tok.leading_space:
            parts.append(" ")
        if tok.kind in (TokenKind.STRING, TokenKind.CHAR):
            parts.append(_escape_literal(tok.text))
        else:
            parts.append(tok.text)
    return Token(TokenKind.STRING, '"' + "".join(parts) + '"', span)


class MacroExpander:
    """
    매크로 확장기

    Args:
        table: 조회할 매크로 테이블
        diagnostics: 진단 수집기
        max_depth: 중첩 확장 깊이 상한 (초과 시 치명적 MacroError)
        file_id: __FILE__ 값
    """

    def __init__(
        self,
        table: MacroTable,
        diagnostics: Optional[DiagnosticSink] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        file_id: str = "",
    ):
        self.table = table
        self.diagnostics = diagnostics
        self.max_depth = max_depth
        self.file_id = file_id
        # 확장 깊이 카운터 (인자 선확장 중첩 수준)
        self.depth = 0
        self.expansion_count = 0
        # 가장 안쪽에서 인자를 선확장 중인 매크로 이름 토큰
        self._innermost: Optional[Token] = None

    # =========================================================================
    # 공개 API
    # =========================================================================

    def expand(self, tokens: Sequence[Token]) -> List[Token]:
        """
        토큰 목록의 매크로를 모두 확장

        Args:
            tokens: 주석이 제거된 토큰 목록

        Returns:
            확장된 토큰 목록
        """
        try:
            return self._expand(tokens)
        except RecursionError:
            # 인자 선확장 중첩이 인터프리터 재귀 한도에 먼저 도달
            self.depth = 0
            if self.diagnostics is None:
                raise
            innermost = self._innermost
            self.diagnostics.fatal(
                DiagnosticKind.MACRO_ERROR,
                f"매크로 인자 중첩이 너무 깊습니다: {innermost.text if innermost else '?'}",
                innermost.span if innermost else None,
            )
            raise

    # =========================================================================
    # 내부 구현
    # =========================================================================

    def _expand(self, tokens: Sequence[Token]) -> List[Token]:
        pending: Deque[Token] = deque(tokens)
        out: List[Token] = []

        while pending:
            tok = pending.popleft()
            if not tok.is_name() or tok.text in tok.hide_set:
                out.append(tok)
                continue

            name = tok.text
            macro = self.table.get(name)
            if macro is None:
                if name in DYNAMIC_MACROS:
                    out.append(self._dynamic(tok))
                else:
                    out.append(tok)
                continue

            if not macro.is_function_like:
                hide_set = tok.hide_set | {name}
                self._check_depth(len(hide_set), tok)
                self.table.record_usage(name, tok.span, tok.expanded_from)
                body = self._substitute(macro, {}, tok, tok.span, hide_set)
                pending.extendleft(reversed(body))
                self.expansion_count += 1
                continue

            if not pending:
                out.append(tok)
                continue
            if not pending[0].is_punct("("):
                # 이미 지나친 이름은 뒤에서 "(" 가 생겨도 호출되지 않음
                out.append(tok.with_changes(hide_set=tok.hide_set | {name}))
                continue

            collected = self._collect_arguments(pending, macro, tok)
            if collected is None:
                out.append(tok)
                continue

            args, close_tok, consumed = collected
            for _ in range(consumed):
                pending.popleft()
            hide_set = (tok.hide_set & close_tok.hide_set) | {name}
            self._check_depth(len(hide_set), tok)
            self.table.record_usage(name, tok.span, tok.expanded_from)
            span = tok.span.merge(close_tok.span) if close_tok.span.file_id == tok.span.file_id else tok.span
            body = self._substitute(macro, dict(zip(macro.params, args)), tok, span, hide_set)
            pending.extendleft(reversed(body))
            self.expansion_count += 1

        return out

    def _check_depth(self, depth: int, tok: Token) -> None:
        if depth > self.max_depth and self.diagnostics is not None:
            self.diagnostics.fatal(
                DiagnosticKind.MACRO_ERROR,
                f"매크로 확장 깊이 상한({self.max_depth}) 초과: {tok.text}",
                tok.span,
            )

    def _dynamic(self, tok: Token) -> Token:
        if tok.text == "__LINE__":
            return tok.with_changes(kind=TokenKind.NUMBER, text=str(tok.span.line),
                                    expanded_from=tok.expanded_from or "__LINE__")
        return tok.with_changes(kind=TokenKind.STRING, text='"' + _escape_literal(self.file_id) + '"',
                                expanded_from=tok.expanded_from or "__FILE__")

    def _macro_error(self, message: str, span: SourceSpan) -> None:
        if self.diagnostics is not None:
            self.diagnostics.error(DiagnosticKind.MACRO_ERROR, message, span)

    def _collect_arguments(
        self,
        pending: Deque[Token],
        macro: MacroDefinition,
        name_tok: Token,
    ) -> Optional[Tuple[List[List[Token]], Token, int]]:
        """
        pending[0] 의 '(' 부터 인자를 수집 (검증 전에는 pending 을 변경하지 않음)

        Returns:
            (인자 목록, 닫는 괄호 토큰, 소비할 토큰 수), 실패 시 None
        """
        args: List[List[Token]] = [[]]
        depth = 0
        close_tok = None
        named = len(macro.params) - 1 if macro.is_variadic else len(macro.params)
        consumed = 0

        for index, tok in enumerate(pending):
            consumed = index + 1
            if index == 0:
                continue
            if tok.is_punct("("):
                depth += 1
            elif tok.is_punct(")"):
                if depth == 0:
                    close_tok = tok
                    break
                depth -= 1
            elif tok.is_punct(",") and depth == 0 and (not macro.is_variadic or len(args) <= named):
                args.append([])
                continue
            args[-1].append(tok)

        if close_tok is None:
            self._macro_error(f"매크로 인자 목록이 닫히지 않았습니다: {macro.name}", name_tok.span)
            return None

        params = len(macro.params)
        if params == 0:
            if args == [[]]:
                return [], close_tok, consumed
        elif macro.is_variadic:
            if len(args) == params - 1:
                # 가변 인자 생략 (GNU 확장)
                args.append([])
            if len(args) == params:
                return args, close_tok, consumed
        elif len(args) == params:
            return args, close_tok, consumed

        given = 0 if args == [[]] else len(args)
        self._macro_error(
            f"매크로 인자 개수 불일치: {macro.name} (필요 {params}, 전달 {given})",
            name_tok.span,
        )
        return None

    def _expand_argument(self, tokens: List[Token], name_tok: Token) -> List[Token]:
        self.depth += 1
        self._innermost = name_tok
        try:
            self._check_depth(self.depth, name_tok)
            return self._expand(tokens)
        finally:
            self.depth -= 1

    def _paste(self, lhs: Token, rhs: Token) -> List[Token]:
        """
        '##' 연산자: 두 토큰을 이어 붙여 다시 토큰화

        결과가 토큰 하나가 아니면 MacroError 를 남기고 두 토큰을 그대로 둡니다.
        """
        text = lhs.text + rhs.text
        lexed = list(tokenize(text, lhs.span.file_id))
        if len(lexed) == 1 and lexed[0].text == text and lexed[0].kind not in (
            TokenKind.COMMENT, TokenKind.UNRECOGNIZED
        ):
            return [lhs.with_changes(kind=lexed[0].kind, text=text)]
        self._macro_error(f"잘못된 토큰 결합: '{lhs.text}' ## '{rhs.text}'", lhs.span)
        return [lhs, rhs]

    def _substitute(
        self,
        macro: MacroDefinition,
        args: Dict[str, List[Token]],
        name_tok: Token,
        span: SourceSpan,
        hide_set,
    ) -> List[Token]:
        """
        본문 치환 (#, ##, 인자 선확장 처리) 후 hide set 과 호출 위치를 부여
        """
        body = macro.body
        expanded_cache: Dict[str, List[Token]] = {}

        def expanded(param: str) -> List[Token]:
            if param not in expanded_cache:
                expanded_cache[param] = self._expand_argument(args[param], name_tok)
            return expanded_cache[param]

        out: list = []
        i = 0
        n = len(body)
        while i < n:
            tok = body[i]

            # 문자열화
            if tok.is_punct("#") and macro.is_function_like and i + 1 < n and body[i + 1].text in args:
                out.append(stringize(args[body[i + 1].text], span).with_changes(
                    leading_space=tok.leading_space))
                i += 2
                continue

            # 토큰 결합
            if tok.is_punct("##") and out and i + 1 < n:
                rhs = body[i + 1]
                i += 2
                if rhs.text in args:
                    # GNU: , ## __VA_ARGS__
                    if macro.is_variadic and rhs.text == macro.params[-1] and \
                            out[-1] is not PLACEMARKER and out[-1].is_punct(","):
                        if not args[rhs.text]:
                            out.pop()
                        else:
                            out.extend(expanded(rhs.text))
                        continue
                    rhs_tokens = list(args[rhs.text])
                else:
                    rhs_tokens = [rhs]
                if not rhs_tokens:
                    continue
                lhs = out.pop()
                if lhs is PLACEMARKER:
                    out.extend(rhs_tokens)
                else:
                    out.extend(self._paste(lhs, rhs_tokens[0]))
                    out.extend(rhs_tokens[1:])
                continue

            # 파라미터
            if tok.text in args and tok.is_name():
                followed_by_paste = i + 1 < n and body[i + 1].is_punct("##")
                replacement = args[tok.text] if followed_by_paste else expanded(tok.text)
                if not replacement:
                    if followed_by_paste:
                        out.append(PLACEMARKER)
                else:
                    first = replacement[0].with_changes(leading_space=tok.leading_space)
                    out.append(first)
                    out.extend(replacement[1:])
                i += 1
                continue

            out.append(tok)
            i += 1

        origin = name_tok.expanded_from or macro.name
        result = []
        for index, tok in enumerate(t for t in out if t is not PLACEMARKER):
            result.append(tok.with_changes(
                span=span,
                hide_set=tok.hide_set | hide_set,
                expanded_from=origin,
                at_line_start=name_tok.at_line_start if index == 0 else False,
                leading_space=name_tok.leading_space if index == 0 else tok.leading_space,
            ))
        return result


def expand_tokens(
    tokens: Sequence[Token],
    table: MacroTable,
    diagnostics: Optional[DiagnosticSink] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    file_id: str = "",
) -> List[Token]:
    """MacroExpander 를 만들어 한 번 확장하는 편의 함수"""
    expander = MacroExpander(table, diagnostics, max_depth, file_id)
    result = expander.expand(tokens)
    logger.trace(f"매크로 확장 {expander.expansion_count}회")
    return result
