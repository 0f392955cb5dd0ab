"""
전처리기 엔진

렉서 토큰을 논리 라인 단위로 읽으며 지시문을 처리하고, 활성 영역의 텍스트를
매크로 확장하여 파서에 넘길 토큰 스트림을 만듭니다.

- 조건부 스택: #if/#ifdef/#ifndef/#elif/#else/#endif
- 비활성 영역 토큰은 InactiveRegion 으로 따로 보관 (파서에는 전달하지 않음)
- #include 는 기록만 하고 따라가지 않음
- 활성 영역 주석은 문서 주석 부착용으로 수집
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from shared_config.logger import LogStage, logger

from .context import TranslationUnitContext
from .diagnostics import AnalysisCancelled, DiagnosticKind, TranslationUnitAborted
from .expansion import DYNAMIC_MACROS
from .expression import DivisionByZero, ExpressionError, evaluate_expression, expression_text
from .lexer import tokenize
from .macros import MacroDefinition, macro_from_key, parse_define
from .tokens import SourceSpan, Token, TokenKind, tokens_to_text

# 값 없이 무시하는 지시문
IGNORED_DIRECTIVES = frozenset({"pragma", "line", "ident", "sccs", "assert", "unassert"})

INCLUDE_DIRECTIVES = frozenset({"include", "include_next", "import"})


class ConditionalKind(Enum):
    """조건부 지시문 종류"""
    IF = "if"
    IFDEF = "ifdef"
    IFNDEF = "ifndef"
    ELIF = "elif"
    ELSE = "else"


@dataclass
class ConditionalFrame:
    """
    조건부 스택 프레임 (#if 체인 하나)

    Attributes:
        kind: 현재 분기의 지시문 종류
        condition: 현재 분기의 조건 텍스트
        value: 현재 분기 활성 여부
        taken: 체인에서 이미 선택된 분기가 있는지
        seen_else: #else 를 지났는지
        parent_active: 바깥 영역이 활성인지
        span: 여는 지시문 위치
        frame_id: 번역 단위 내 고유 번호
    """
    kind: ConditionalKind
    condition: str
    value: bool
    taken: bool
    seen_else: bool
    parent_active: bool
    span: SourceSpan
    frame_id: int


@dataclass
class ConditionalDirective:
    """보고용 조건부 지시문 기록"""
    kind: ConditionalKind
    condition: str
    line: int
    frame_id: int
    evaluated: bool
    result: Optional[bool]
    span: SourceSpan

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "condition": self.condition,
            "line": self.line,
            "frame_id": self.frame_id,
            "evaluated": self.evaluated,
            "result": self.result,
            "span": self.span.to_dict(),
        }


@dataclass
class IncludeDirective:
    """#include 기록"""
    path: str
    is_system: bool
    line: int
    span: SourceSpan
    directive: str = "include"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "is_system": self.is_system,
            "line": self.line,
            "directive": self.directive,
            "span": self.span.to_dict(),
        }


@dataclass
class InactiveRegion:
    """비활성 영역 (조건이 거짓인 분기)"""
    frame_id: int
    kind: ConditionalKind
    condition: str
    start_line: int
    end_line: Optional[int] = None
    tokens: List[Token] = field(default_factory=list)

    @property
    def text(self) -> str:
        return tokens_to_text(self.tokens)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frame_id": self.frame_id,
            "kind": self.kind.value,
            "condition": self.condition,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "tokens": [t.to_dict() for t in self.tokens],
        }


@dataclass
class PreprocessResult:
    """전처리 결과"""
    tokens: List[Token]
    inactive_regions: List[InactiveRegion]
    conditionals: List[ConditionalDirective]
    includes: List[IncludeDirective]
    comments: List[Token]
    aborted: bool = False
    cancelled: bool = False


class Preprocessor:
    """
    번역 단위 하나의 전처리기

    사용 예:
        context = TranslationUnitContext(text, "a.c")
        result = Preprocessor(context).run()
    """

    def __init__(self, context: TranslationUnitContext):
        self.context = context
        self.diagnostics = context.diagnostics
        self.macros = context.macros
        self.stack: List[ConditionalFrame] = context.conditional_stack

        self.inactive_regions: List[InactiveRegion] = []
        self.conditionals: List[ConditionalDirective] = []
        self.includes: List[IncludeDirective] = []
        self.comments: List[Token] = []

        self._output: List[Token] = []
        self._pending: List[Token] = []
        self._line: List[Token] = []
        self._region: Optional[InactiveRegion] = None

        self._handlers = {
            "define": self._handle_define,
            "undef": self._handle_undef,
            "error": self._handle_error,
            "warning": self._handle_warning,
        }
        for name in INCLUDE_DIRECTIVES:
            self._handlers[name] = self._handle_include

    # =========================================================================
    # 엔진 연산
    # =========================================================================

    def define(self, name: str, params: Optional[Sequence[str]] = None, body: str = "",
               span: Optional[SourceSpan] = None) -> Optional[MacroDefinition]:
        """
        매크로 정의 (params 가 None 이면 객체형)
        """
        key = name if params is None else f"{name}({', '.join(params)})"
        macro = macro_from_key(key, body, span.file_id if span else self.context.file_id)
        if macro is None:
            return None
        if span is not None:
            macro.span = span
        return self.macros.define(macro)

    def undefine(self, name: str) -> None:
        self.macros.undefine(name)

    def is_active(self) -> bool:
        """모든 조건부 프레임이 활성일 때만 True"""
        return all(frame.value for frame in self.stack)

    def expand(self, tokens: Sequence[Token]) -> List[Token]:
        return self.context.expander.expand(tokens)

    # =========================================================================
    # 실행
    # =========================================================================

    def run(self) -> PreprocessResult:
        """
        번역 단위 전체를 전처리

        치명적 진단과 취소는 여기서 잡아 부분 결과로 돌려줍니다.
        """
        aborted = False
        cancelled = False
        try:
            with LogStage("전처리", file=self.context.file_id):
                self._run()
        except TranslationUnitAborted as e:
            aborted = True
            logger.error(f"번역 단위 처리 중단: {e.diagnostic}")
            if e.diagnostic.kind == DiagnosticKind.LEXICAL_ERROR:
                self._salvage()
        except AnalysisCancelled:
            cancelled = True
            logger.warning(f"전처리 취소: {self.context.file_id}")
        finally:
            self._close_region(None)

        logger.debug(
            f"전처리 결과: 토큰 {len(self._output)}개, 비활성 영역 {len(self.inactive_regions)}개, "
            f"include {len(self.includes)}개"
        )
        return PreprocessResult(
            tokens=self._output,
            inactive_regions=self.inactive_regions,
            conditionals=self.conditionals,
            includes=self.includes,
            comments=self.comments,
            aborted=aborted,
            cancelled=cancelled,
        )

    def _run(self) -> None:
        for tok in tokenize(self.context.source_text, self.context.file_id, self.diagnostics):
            if tok.at_line_start and self._line:
                line, self._line = self._line, []
                self._process_line(line)
            self._line.append(tok)

        if self._line:
            line, self._line = self._line, []
            self._process_line(line)
        self._flush()
        self._check_unterminated()

    def _salvage(self) -> None:
        """어휘 오류로 중단되었을 때 이미 읽은 라인까지 처리"""
        try:
            if self._line:
                self._process_line(self._line)
            self._flush()
        except (TranslationUnitAborted, AnalysisCancelled) as e:
            logger.debug(f"부분 결과 정리 중 중단: {e}")
        finally:
            self._line = []
            self._pending = []

    def _check_unterminated(self) -> None:
        if not self.stack:
            return
        outer = self.stack[0]
        self.diagnostics.fatal(
            DiagnosticKind.CONDITIONAL_ERROR,
            f"종료되지 않은 조건부 지시문 {len(self.stack)}개 (#{outer.kind.value} {outer.condition})".rstrip(),
            outer.span,
        )

    def _flush(self) -> None:
        if self._pending:
            pending, self._pending = self._pending, []
            self._output.extend(self.context.expander.expand(pending))

    def _process_line(self, line: List[Token]) -> None:
        if line[0].is_punct("#"):
            self.context.check_cancelled()
            self._flush()
            self._directive(line)
            return

        if not self.is_active():
            self._add_inactive(line)
            return

        for tok in line:
            if tok.kind == TokenKind.COMMENT:
                self.comments.append(tok)
            else:
                self._pending.append(tok)

    # =========================================================================
    # 비활성 영역
    # =========================================================================

    def _open_region(self, frame: ConditionalFrame, line: List[Token]) -> None:
        self._region = InactiveRegion(
            frame_id=frame.frame_id,
            kind=frame.kind,
            condition=frame.condition,
            start_line=line[-1].span.end_line + 1,
        )
        self.inactive_regions.append(self._region)

    def _close_region(self, line: Optional[List[Token]]) -> None:
        if self._region is None:
            return
        if line:
            self._region.end_line = line[0].line - 1
        elif self._region.tokens:
            self._region.end_line = self._region.tokens[-1].span.end_line
        else:
            self._region.end_line = self._region.start_line - 1
        self._region = None

    def _add_inactive(self, line: List[Token]) -> None:
        if self._region is not None and self.context.config.collect_inactive_tokens:
            self._region.tokens.extend(line)

    # =========================================================================
    # 지시문
    # =========================================================================

    def _directive(self, line: List[Token]) -> None:
        body = [t for t in line[1:] if t.kind != TokenKind.COMMENT]
        name_tok = body[0] if body else None
        name = name_tok.text if name_tok is not None and name_tok.is_name() else ""
        args = body[1:]

        if name in ("if", "ifdef", "ifndef"):
            self._open_conditional(ConditionalKind(name), name_tok, args, line)
            return
        if name == "elif":
            self._handle_elif(name_tok, args, line)
            return
        if name == "else":
            self._handle_else(name_tok, line)
            return
        if name == "endif":
            self._handle_endif(name_tok, line)
            return

        if not self.is_active():
            self._add_inactive(line)
            return

        # 널 지시문, 라인 마커(# 12 "file")
        if name_tok is None or name_tok.kind == TokenKind.NUMBER or name in IGNORED_DIRECTIVES:
            return

        handler = self._handlers.get(name)
        if handler is None:
            self.diagnostics.warning(
                DiagnosticKind.DIRECTIVE_WARNING,
                f"알 수 없는 지시문: #{name_tok.text}",
                name_tok.span,
            )
            return
        handler(name_tok, args, line)

    # ----- 조건부 -----

    def _open_conditional(self, kind: ConditionalKind, name_tok: Token, args: List[Token],
                          line: List[Token]) -> None:
        parent_active = self.is_active()
        if not parent_active:
            self._add_inactive(line)

        condition = tokens_to_text(args)
        if parent_active:
            value = self._evaluate_branch(kind, name_tok, args)
        else:
            value = False

        frame = ConditionalFrame(
            kind=kind,
            condition=condition,
            value=value,
            taken=value or not parent_active,
            seen_else=False,
            parent_active=parent_active,
            span=line[0].span.merge(line[-1].span),
            frame_id=self.context.next_frame_id(),
        )
        self.stack.append(frame)
        self._record(frame, name_tok, evaluated=parent_active)
        if parent_active and not value:
            self._open_region(frame, line)

    def _top_frame(self, name_tok: Token) -> ConditionalFrame:
        if not self.stack:
            self.diagnostics.fatal(
                DiagnosticKind.CONDITIONAL_ERROR,
                f"짝이 맞는 #if 가 없는 #{name_tok.text}",
                name_tok.span,
            )
        return self.stack[-1]

    def _handle_elif(self, name_tok: Token, args: List[Token], line: List[Token]) -> None:
        frame = self._top_frame(name_tok)
        if frame.seen_else:
            self.diagnostics.fatal(
                DiagnosticKind.CONDITIONAL_ERROR, "#else 뒤에 #elif 가 올 수 없습니다", name_tok.span
            )

        frame.kind = ConditionalKind.ELIF
        frame.condition = tokens_to_text(args)
        if not frame.parent_active:
            self._add_inactive(line)
            self._record(frame, name_tok, evaluated=False)
            return

        self._close_region(line)
        if frame.taken:
            frame.value = False
            self._record(frame, name_tok, evaluated=False)
        else:
            frame.value = self._evaluate_branch(ConditionalKind.ELIF, name_tok, args)
            frame.taken = frame.value
            self._record(frame, name_tok, evaluated=True)
        if not frame.value:
            self._open_region(frame, line)

    def _handle_else(self, name_tok: Token, line: List[Token]) -> None:
        frame = self._top_frame(name_tok)
        if frame.seen_else:
            self.diagnostics.fatal(
                DiagnosticKind.CONDITIONAL_ERROR, "#else 가 중복되었습니다", name_tok.span
            )

        frame.kind = ConditionalKind.ELSE
        frame.condition = ""
        frame.seen_else = True
        if not frame.parent_active:
            self._add_inactive(line)
            self._record(frame, name_tok, evaluated=False)
            return

        self._close_region(line)
        frame.value = not frame.taken
        frame.taken = True
        self._record(frame, name_tok, evaluated=True)
        if not frame.value:
            self._open_region(frame, line)

    def _handle_endif(self, name_tok: Token, line: List[Token]) -> None:
        frame = self._top_frame(name_tok)
        self.stack.pop()
        if not frame.parent_active:
            self._add_inactive(line)
            return
        self._close_region(line)

    def _record(self, frame: ConditionalFrame, name_tok: Token, evaluated: bool) -> None:
        self.conditionals.append(ConditionalDirective(
            kind=frame.kind,
            condition=frame.condition,
            line=name_tok.line,
            frame_id=frame.frame_id,
            evaluated=evaluated,
            result=frame.value if evaluated else None,
            span=name_tok.span,
        ))

    # ----- 조건 평가 -----

    def _evaluate_branch(self, kind: ConditionalKind, name_tok: Token, args: List[Token]) -> bool:
        if kind in (ConditionalKind.IFDEF, ConditionalKind.IFNDEF):
            if not args or not args[0].is_name():
                self.diagnostics.error(
                    DiagnosticKind.MACRO_ERROR,
                    f"#{kind.value} 뒤에 매크로 이름이 필요합니다",
                    name_tok.span,
                )
                return False
            defined = self._is_defined(args[0].text)
            return defined if kind == ConditionalKind.IFDEF else not defined
        return self.evaluate_condition(args, name_tok.span)

    def _is_defined(self, name: str) -> bool:
        return name in self.macros or name in DYNAMIC_MACROS

    def evaluate_condition(self, tokens: Sequence[Token], anchor: Optional[SourceSpan] = None) -> bool:
        """
        #if/#elif 조건 평가

        defined 치환 → 매크로 확장 → 남은 식별자를 0으로 → 상수식 평가 순서입니다.
        평가할 수 없으면 MacroError 를 남기고 False 를 돌려줍니다.
        """
        replaced = self._replace_defined(tokens, anchor)
        if replaced is None:
            return False
        if not replaced:
            self.diagnostics.error(DiagnosticKind.MACRO_ERROR, "#if 조건식이 비어 있습니다", anchor)
            return False

        expanded = self.context.expander.expand(replaced)
        final = [
            t.with_changes(kind=TokenKind.NUMBER, text="0") if t.is_name() else t
            for t in expanded
        ]
        text = expression_text(final)
        try:
            return bool(evaluate_expression(text))
        except DivisionByZero:
            self.diagnostics.error(
                DiagnosticKind.MACRO_ERROR, f"#if 조건에서 0으로 나누기: {tokens_to_text(tokens)}", anchor
            )
        except ExpressionError as e:
            self.diagnostics.error(
                DiagnosticKind.MACRO_ERROR, f"#if 조건을 평가할 수 없습니다: {e}", anchor
            )
        return False

    def _replace_defined(self, tokens: Sequence[Token], anchor: Optional[SourceSpan]) -> Optional[List[Token]]:
        out: List[Token] = []
        i = 0
        n = len(tokens)
        while i < n:
            tok = tokens[i]
            if not (tok.is_name() and tok.text == "defined"):
                out.append(tok)
                i += 1
                continue

            j = i + 1
            paren = j < n and tokens[j].is_punct("(")
            if paren:
                j += 1
            if j >= n or not tokens[j].is_name():
                self.diagnostics.error(
                    DiagnosticKind.MACRO_ERROR, "'defined' 뒤에 매크로 이름이 필요합니다", tok.span or anchor
                )
                return None
            name = tokens[j].text
            j += 1
            if paren:
                if j >= n or not tokens[j].is_punct(")"):
                    self.diagnostics.error(
                        DiagnosticKind.MACRO_ERROR, "'defined(' 의 괄호가 닫히지 않았습니다", tok.span
                    )
                    return None
                j += 1
            out.append(tok.with_changes(kind=TokenKind.NUMBER, text="1" if self._is_defined(name) else "0"))
            i = j
        return out

    # ----- 기타 지시문 -----

    def _handle_define(self, name_tok: Token, args: List[Token], line: List[Token]) -> None:
        macro = parse_define(args, self.diagnostics, anchor=name_tok.span)
        if macro is not None:
            self.macros.define(macro)

    def _handle_undef(self, name_tok: Token, args: List[Token], line: List[Token]) -> None:
        if not args or not args[0].is_name():
            self.diagnostics.error(DiagnosticKind.MACRO_ERROR, "#undef 뒤에 매크로 이름이 필요합니다",
                                   name_tok.span)
            return
        self.macros.undefine(args[0].text)

    def _handle_error(self, name_tok: Token, args: List[Token], line: List[Token]) -> None:
        self.diagnostics.error(DiagnosticKind.DIRECTIVE_ERROR, f"#error {tokens_to_text(args)}".rstrip(),
                               name_tok.span)

    def _handle_warning(self, name_tok: Token, args: List[Token], line: List[Token]) -> None:
        self.diagnostics.warning(DiagnosticKind.DIRECTIVE_WARNING, f"#warning {tokens_to_text(args)}".rstrip(),
                                 name_tok.span)

    def _handle_include(self, name_tok: Token, args: List[Token], line: List[Token]) -> None:
        target = self._include_target(args)
        if target is None and args:
            target = self._include_target(self.context.expander.expand(args))
        if target is None:
            self.diagnostics.warning(
                DiagnosticKind.DIRECTIVE_WARNING,
                f"잘못된 #{name_tok.text} 형식: {tokens_to_text(args)}",
                name_tok.span,
            )
            return

        path, is_system = target
        self.includes.append(IncludeDirective(
            path=path,
            is_system=is_system,
            line=name_tok.line,
            span=line[0].span.merge(line[-1].span),
            directive=name_tok.text,
        ))
        logger.debug(f"include 기록: {path} (system={is_system})")

    @staticmethod
    def _include_target(tokens: Sequence[Token]) -> Optional[Tuple[str, bool]]:
        if not tokens:
            return None
        first = tokens[0]
        if first.kind == TokenKind.STRING and first.text.startswith('"'):
            return first.text[1:-1], False
        if first.is_punct("<"):
            for index, tok in enumerate(tokens[1:], start=1):
                if tok.is_punct(">"):
                    return tokens_to_text(tokens[1:index]), True
        return None
