"""
선언 파서 모듈

전처리가 끝난 활성 토큰 스트림을 재귀 하강 방식으로 읽어 최상위 선언을 추출합니다.
시그니처와 형태만 복원하면 되므로 함수 본문은 중괄호 균형만 맞추어 건너뜁니다.
해석할 수 없는 구문은 SyntaxError 진단을 남기고 다음 ';' 또는 균형 잡힌 {...} 뒤에서 재개합니다.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from shared_config.logger import LogStage, logger
from shared_config.type_mappings import (
    EXTENSION_KEYWORDS,
    FUNCTION_SPECIFIERS,
    PRIMITIVE_TYPE_KEYWORDS,
    STORAGE_CLASSES,
    TYPE_QUALIFIERS,
    is_type_keyword,
    normalize_primitive,
)

from .context import TranslationUnitContext
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
from .diagnostics import AnalysisCancelled, DiagnosticKind
from .expression import ExpressionError, evaluate_expression, expression_text
from .tokens import SourceSpan, Token, TokenKind
from .type_descriptors import INT, TypeDescriptor, TypeKind, TypeTag

_RECORD_TAGS = {"struct": TypeTag.STRUCT, "union": TypeTag.UNION}
_RECORD_KINDS = {"struct": DeclarationKind.STRUCT, "union": DeclarationKind.UNION}

# 괄호 인자를 그냥 건너뛰는 키워드
_SKIPPED_WITH_PARENS = frozenset({"_Alignas", "typeof", "__typeof__", "__typeof"})


class ParseProblem(Exception):
    """복구 가능한 구문 오류 (SyntaxError 진단으로 기록)"""

    def __init__(self, message: str, span: Optional[SourceSpan] = None, resume: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.span = span
        # 설정되면 복구 대신 이 토큰 위치부터 파싱을 다시 시작
        self.resume = resume


@dataclass
class Specifiers:
    """선언 지정자 해석 결과"""
    base: TypeDescriptor
    storage: Optional[str] = None
    qualifiers: List[str] = field(default_factory=list)
    function_specifiers: List[str] = field(default_factory=list)
    guessed_name: Optional[str] = None  # 알 수 없는 식별자를 타입으로 추정한 경우


@dataclass
class ParamList:
    """함수 선언자의 파라미터 목록"""
    params: List[Parameter] = field(default_factory=list)
    variadic: bool = False
    unspecified: bool = False            # f()
    identifier_names: Optional[List[str]] = None  # K&R 식별자 목록 후보


@dataclass
class Declarator:
    """
    선언자 (이름 + 포인터/배열/함수 파생)

    suffixes 항목: ("array", extent_text, extent_value) 또는 ("function", ParamList)
    """
    name: Optional[str] = None
    name_span: Optional[SourceSpan] = None
    pointers: List[Tuple[str, ...]] = field(default_factory=list)
    inner: Optional["Declarator"] = None
    suffixes: List[tuple] = field(default_factory=list)

    @property
    def identifier(self) -> Optional[str]:
        if self.name is not None:
            return self.name
        return self.inner.identifier if self.inner else None

    @property
    def identifier_span(self) -> Optional[SourceSpan]:
        if self.name_span is not None:
            return self.name_span
        return self.inner.identifier_span if self.inner else None

    @property
    def is_bare(self) -> bool:
        return not self.pointers and not self.suffixes and self.inner is None

    def apply(self, base: TypeDescriptor) -> TypeDescriptor:
        """기본 타입에 파생을 적용 (포인터 → 접미사 역순 → 안쪽 선언자)"""
        result = base
        for quals in self.pointers:
            result = TypeDescriptor.pointer(result, quals)
        for suffix in reversed(self.suffixes):
            if suffix[0] == "array":
                result = TypeDescriptor.array(result, suffix[1], suffix[2])
            else:
                plist: ParamList = suffix[1]
                result = TypeDescriptor.function(result, [p.type for p in plist.params], plist.variadic)
        if self.inner is not None:
            result = self.inner.apply(result)
        return result

    def function_parameters(self) -> Optional[ParamList]:
        """이름에 가장 가까운 파생이 함수일 때 그 파라미터 목록"""
        chain = [self]
        while chain[-1].inner is not None:
            chain.append(chain[-1].inner)
        for level in reversed(chain):
            if level.suffixes:
                first = level.suffixes[0]
                return first[1] if first[0] == "function" else None
            if level.pointers:
                return None
        return None


@dataclass
class ParseResult:
    """파싱 결과"""
    declarations: List[Declaration]
    cancelled: bool = False


class DeclarationParser:
    """
    재귀 하강 선언 파서

    Args:
        tokens: 전처리된 활성 토큰 (주석 없음)
        context: 번역 단위 컨텍스트
    """

    def __init__(self, tokens: Sequence[Token], context: TranslationUnitContext):
        self.tokens = list(tokens)
        self.pos = 0
        self.context = context
        self.diagnostics = context.diagnostics
        self.known_types = context.config.known_type_names
        self.typedef_names: Set[str] = set()
        self.enum_values: Dict[str, int] = {}
        self.declarations: List[Declaration] = []

    # =========================================================================
    # 토큰 헬퍼
    # =========================================================================

    def peek(self, offset: int = 0) -> Optional[Token]:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def at(self, text: str, offset: int = 0) -> bool:
        tok = self.peek(offset)
        return tok is not None and tok.text == text and tok.kind in (
            TokenKind.PUNCTUATOR, TokenKind.KEYWORD
        )

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def accept(self, text: str) -> Optional[Token]:
        if self.at(text):
            return self.advance()
        return None

    def expect(self, text: str) -> Token:
        if self.at(text):
            return self.advance()
        raise ParseProblem(f"'{text}' 가 필요합니다 (현재: {self._describe()})", self._here())

    def _describe(self) -> str:
        tok = self.peek()
        return f"'{tok.text}'" if tok is not None else "파일 끝"

    def _here(self) -> Optional[SourceSpan]:
        tok = self.peek()
        if tok is not None:
            return tok.span
        return self.tokens[-1].span if self.tokens else None

    def _span_from(self, start: int) -> SourceSpan:
        """tokens[start] 부터 직전 토큰까지의 영역"""
        first = self.tokens[start].span
        last = self.tokens[max(start, self.pos - 1)].span
        return first.merge(last)

    def _source_text(self, tokens: Sequence[Token]) -> str:
        """토큰이 유래한 원본 텍스트 (매크로 확장 전 철자)"""
        if not tokens:
            return ""
        span = tokens[0].span.merge(tokens[-1].span)
        if span.file_id != self.context.file_id:
            return expression_text(tokens)
        return self.context.source_slice(span.offset, span.length).strip()

    # =========================================================================
    # 진입점
    # =========================================================================

    def parse(self) -> ParseResult:
        cancelled = False
        with LogStage("선언 파싱", file=self.context.file_id, tokens=len(self.tokens)):
            try:
                while not self.at_end():
                    self.context.check_cancelled()
                    start = self.pos
                    try:
                        self._external_declaration()
                    except ParseProblem as e:
                        self.diagnostics.error(DiagnosticKind.SYNTAX_ERROR, e.message, e.span)
                        if e.resume is not None and e.resume > start:
                            self.pos = e.resume
                        else:
                            self._recover(start)
            except AnalysisCancelled:
                cancelled = True
                logger.warning(f"선언 파싱 취소: {self.context.file_id}")

        logger.debug(f"선언 {len(self.declarations)}개 추출 ({self.context.file_id})")
        return ParseResult(self.declarations, cancelled)

    def _emit(self, decl: Declaration) -> Declaration:
        self.declarations.append(decl)
        logger.trace(f"선언 추출: {decl.kind.value} {decl.name}")
        return decl

    # =========================================================================
    # 복구
    # =========================================================================

    def _recover(self, start: int) -> None:
        """start 부터 다음 ';' 또는 균형 잡힌 {...} 뒤까지 건너뜀"""
        self.pos = start
        depth = 0
        while not self.at_end():
            tok = self.advance()
            if tok.kind != TokenKind.PUNCTUATOR:
                continue
            if tok.text in ("(", "["):
                depth += 1
            elif tok.text in (")", "]"):
                depth = max(0, depth - 1)
            elif tok.text == ";" and depth == 0:
                break
            elif tok.text == "{":
                self.pos -= 1
                self._skip_balanced("{", "}")
                self.accept(";")
                break
            elif tok.text == "}" and depth == 0:
                break
        if self.pos <= start:
            self.pos = start + 1

    def _recover_in_block(self) -> None:
        """블록 안에서 다음 ';' 뒤 또는 닫는 '}' 앞까지 건너뜀"""
        depth = 0
        while not self.at_end():
            tok = self.peek()
            if tok.kind == TokenKind.PUNCTUATOR:
                if tok.text in ("(", "[", "{"):
                    depth += 1
                elif tok.text in (")", "]"):
                    depth = max(0, depth - 1)
                elif tok.text == "}":
                    if depth == 0:
                        return
                    depth -= 1
                elif tok.text == ";" and depth == 0:
                    self.advance()
                    return
            self.advance()

    def _skip_balanced(self, open_text: str, close_text: str) -> Optional[Token]:
        """여는 괄호 위치에서 짝이 맞는 닫는 괄호까지 건너뛰고 닫는 토큰 반환 (없으면 None)"""
        self.expect(open_text)
        depth = 1
        while not self.at_end():
            tok = self.advance()
            if tok.kind != TokenKind.PUNCTUATOR:
                continue
            if tok.text == open_text:
                depth += 1
            elif tok.text == close_text:
                depth -= 1
                if depth == 0:
                    return tok
        return None

    def _skip_extensions(self) -> None:
        """__attribute__((...)), __declspec(...), __asm__(...), __extension__ 건너뜀"""
        while True:
            tok = self.peek()
            if tok is None or tok.text not in EXTENSION_KEYWORDS or not tok.is_name():
                return
            self.advance()
            if self.at("("):
                self._skip_balanced("(", ")")

    def _collect_until(self, stops: Tuple[str, ...]) -> List[Token]:
        """깊이 0 에서 stops 중 하나를 만날 때까지 토큰 수집 (stop 토큰은 소비하지 않음)"""
        collected = []
        depth = 0
        while not self.at_end():
            tok = self.peek()
            if tok.kind == TokenKind.PUNCTUATOR:
                if depth == 0 and tok.text in stops:
                    break
                if tok.text in ("(", "[", "{"):
                    depth += 1
                elif tok.text in (")", "]", "}"):
                    if depth == 0:
                        break
                    depth -= 1
            collected.append(self.advance())
        return collected

    def _collect_initializer(self) -> List[Token]:
        """
        '=' 뒤 초기값 수집 (깊이 0 의 ',' 또는 ';' 앞까지)

        ';' 가 빠져 다음 선언까지 삼키는 경우는 ParseProblem 으로 끊습니다.
        - 깊이 0 에서 줄 첫머리에 선언을 시작하는 토큰이 오면 그 위치에서 파싱 재개
        - 깊이 0 의 '{' 는 첫 토큰이거나 복합 리터럴 (타입) 뒤에서만 허용
        """
        collected: List[Token] = []
        depth = 0
        group_start = None
        while not self.at_end():
            tok = self.peek()
            if depth == 0 and collected:
                if tok.at_line_start and self._starts_declaration(tok):
                    raise ParseProblem("초기값 뒤에 ';' 가 필요합니다", collected[-1].span, resume=self.pos)
                if tok.is_punct("{") and not self._is_compound_literal(collected, group_start):
                    raise ParseProblem("초기값 안에 예상하지 못한 '{'", tok.span)
            if tok.kind == TokenKind.PUNCTUATOR:
                if depth == 0 and tok.text in (",", ";"):
                    break
                if tok.text in ("(", "[", "{"):
                    if depth == 0 and tok.text == "(":
                        group_start = len(collected)
                    depth += 1
                elif tok.text in (")", "]", "}"):
                    if depth == 0:
                        break
                    depth -= 1
            collected.append(self.advance())
        return collected

    def _starts_declaration(self, tok: Token) -> bool:
        return self._starts_type(tok) or tok.text == "_Static_assert"

    def _is_compound_literal(self, collected: List[Token], group_start: Optional[int]) -> bool:
        """(타입){...} 형태의 복합 리터럴인지"""
        if group_start is None or not collected[-1].is_punct(")") or group_start + 1 >= len(collected):
            return False
        return self._starts_type(collected[group_start + 1])

    # =========================================================================
    # 타입 이름 판별
    # =========================================================================

    def is_type_name(self, name: str) -> bool:
        return name in self.typedef_names or name in self.known_types

    def _starts_type(self, tok: Optional[Token]) -> bool:
        if tok is None:
            return False
        if tok.kind == TokenKind.KEYWORD:
            return is_type_keyword(tok.text) or tok.text in EXTENSION_KEYWORDS or tok.text in _SKIPPED_WITH_PARENS
        return tok.kind == TokenKind.IDENTIFIER and self.is_type_name(tok.text)

    def _named_type(self, name: str) -> TypeDescriptor:
        if name in self.typedef_names:
            return TypeDescriptor.named(TypeTag.TYPEDEF, name)
        if name in self.known_types:
            return TypeDescriptor.primitive(name)
        return TypeDescriptor.named(TypeTag.TYPEDEF, name)

    # =========================================================================
    # 최상위 선언
    # =========================================================================

    def _external_declaration(self) -> None:
        if self.accept(";"):
            return
        tok = self.peek()
        if tok.text == "_Static_assert":
            self.advance()
            self._skip_balanced("(", ")")
            self.expect(";")
            return
        if tok.text in ("asm", "__asm__", "__asm") and self.at("(", 1):
            self.advance()
            self._skip_balanced("(", ")")
            self.accept(";")
            return

        start = self.pos
        specs = self._declaration_specifiers(top_level=True)
        if self.accept(";"):
            return

        pending: List[Declaration] = []
        first = True
        while True:
            declarator = self._declarator(abstract_ok=False)
            if declarator.identifier is None:
                raise ParseProblem("선언자 이름이 필요합니다", self._here())
            full_type = declarator.apply(specs.base)
            self._skip_extensions()

            if first and full_type.kind == TypeKind.FUNCTION and specs.storage != "typedef":
                plist = declarator.function_parameters()
                if self.at("{") or (plist is not None and plist.identifier_names and self._starts_type(self.peek())):
                    self._function_definition(start, specs, declarator, full_type, plist)
                    return
            first = False

            initializer = None
            if self.accept("="):
                initializer_tokens = self._collect_initializer()
                if not initializer_tokens:
                    raise ParseProblem("초기값이 필요합니다", self._here())
                initializer = self._source_text(initializer_tokens)

            pending.append(self._make_declaration(specs, declarator, full_type, initializer))
            if self.accept(","):
                continue
            self.expect(";")
            break

        span = self._span_from(start)
        for decl in pending:
            decl.span = span
            if isinstance(decl, FunctionDecl):
                decl.forward_spans = [span]
            elif isinstance(decl, VariableDecl) and not decl.is_definition:
                decl.forward_spans = [span]
            self._emit(decl)

    def _decl_qualifiers(self, specs: Specifiers) -> List[str]:
        quals = []
        for q in specs.qualifiers + specs.function_specifiers:
            if q not in quals:
                quals.append(q)
        return quals

    def _make_declaration(self, specs: Specifiers, declarator: Declarator,
                          full_type: TypeDescriptor, initializer: Optional[str]) -> Declaration:
        name = declarator.identifier
        name_span = declarator.identifier_span
        placeholder = name_span or self._here()

        if specs.storage == "typedef":
            self.typedef_names.add(name)
            return TypedefDecl(
                name=name, span=placeholder, name_span=name_span,
                qualifiers=self._decl_qualifiers(specs), underlying=full_type,
            )

        if full_type.kind == TypeKind.FUNCTION:
            plist = declarator.function_parameters()
            params = self._function_parameter_list(plist, full_type)
            return FunctionDecl(
                name=name, span=placeholder, name_span=name_span,
                storage_class=specs.storage, qualifiers=self._decl_qualifiers(specs),
                return_type=full_type.target, parameters=params,
                has_body=False, is_variadic=full_type.variadic,
                has_prototype=not (plist is not None and plist.unspecified),
            )

        return VariableDecl(
            name=name, span=placeholder, name_span=name_span,
            storage_class=specs.storage, qualifiers=self._decl_qualifiers(specs),
            var_type=full_type, initializer=initializer,
            is_definition=specs.storage != "extern" or initializer is not None,
        )

    @staticmethod
    def _function_parameter_list(plist: Optional[ParamList], full_type: TypeDescriptor) -> List[Parameter]:
        if plist is not None:
            return list(plist.params)
        return [Parameter(None, t) for t in full_type.params]

    def _function_definition(self, start: int, specs: Specifiers, declarator: Declarator,
                             full_type: TypeDescriptor, plist: Optional[ParamList]) -> None:
        """함수 정의: 파라미터는 모두 해석하고 본문은 건너뜀"""
        params = self._function_parameter_list(plist, full_type)
        is_knr = False

        if plist is not None and plist.identifier_names:
            is_knr = True
            declared = self._knr_declarations()
            params = [
                Parameter(n, declared.get(n, (INT, None))[0], declared.get(n, (INT, None))[1])
                for n in plist.identifier_names
            ]
            full_type = TypeDescriptor.function(full_type.target, [p.type for p in params], False)

        body_start = self.pos
        close = self._skip_balanced("{", "}")
        if close is None:
            self.diagnostics.error(
                DiagnosticKind.SYNTAX_ERROR,
                f"함수 본문이 닫히지 않았습니다: {declarator.identifier}",
                self.tokens[body_start].span,
            )
        span = self._span_from(start)

        self._emit(FunctionDecl(
            name=declarator.identifier,
            span=span,
            name_span=declarator.identifier_span,
            storage_class=specs.storage,
            qualifiers=self._decl_qualifiers(specs),
            return_type=full_type.target,
            parameters=params,
            has_body=True,
            is_variadic=full_type.variadic,
            definition_span=span,
            is_knr=is_knr,
            has_prototype=not is_knr and not (plist is not None and plist.unspecified),
        ))

    def _knr_declarations(self) -> Dict[str, Tuple[TypeDescriptor, Optional[SourceSpan]]]:
        """K&R 파라미터 선언 목록 ('{' 전까지)"""
        declared: Dict[str, Tuple[TypeDescriptor, Optional[SourceSpan]]] = {}
        while not self.at_end() and not self.at("{"):
            specs = self._declaration_specifiers()
            while True:
                declarator = self._declarator(abstract_ok=False)
                if declarator.identifier is not None:
                    declared[declarator.identifier] = (declarator.apply(specs.base), declarator.identifier_span)
                if self.accept(","):
                    continue
                self.expect(";")
                break
        return declared

    # =========================================================================
    # 선언 지정자
    # =========================================================================

    def _declaration_specifiers(self, param_mode: bool = False, top_level: bool = False) -> Specifiers:
        storage = None
        qualifiers: List[str] = []
        function_specifiers: List[str] = []
        primitive_words: List[str] = []
        base: Optional[TypeDescriptor] = None
        guessed = None
        consumed = False

        while not self.at_end():
            tok = self.peek()
            text = tok.text

            if tok.kind == TokenKind.KEYWORD:
                if text in EXTENSION_KEYWORDS:
                    self._skip_extensions()
                    continue
                if text in STORAGE_CLASSES:
                    if storage is None:
                        storage = text
                    self.advance()
                    consumed = True
                    continue
                if text in TYPE_QUALIFIERS:
                    qualifiers.append(TYPE_QUALIFIERS[text])
                    self.advance()
                    consumed = True
                    if text == "_Atomic" and self.at("("):
                        self._skip_balanced("(", ")")
                        base = base or TypeDescriptor.unresolved("_Atomic")
                    continue
                if text in FUNCTION_SPECIFIERS:
                    function_specifiers.append(FUNCTION_SPECIFIERS[text])
                    self.advance()
                    consumed = True
                    continue
                if text in _SKIPPED_WITH_PARENS:
                    self.advance()
                    if self.at("("):
                        self._skip_balanced("(", ")")
                    if text != "_Alignas":
                        base = base or TypeDescriptor.unresolved(text)
                    consumed = True
                    continue
                if text in PRIMITIVE_TYPE_KEYWORDS and base is None:
                    primitive_words.append(text)
                    self.advance()
                    consumed = True
                    continue
                if text in ("struct", "union") and base is None and not primitive_words:
                    base = self._record_specifier()
                    consumed = True
                    continue
                if text == "enum" and base is None and not primitive_words:
                    base = self._enum_specifier()
                    consumed = True
                    continue
                break

            if tok.kind == TokenKind.IDENTIFIER and base is None and not primitive_words:
                if self.is_type_name(text):
                    base = self._named_type(text)
                    self.advance()
                    consumed = True
                    continue
                if self._looks_like_type(param_mode):
                    base = self._named_type(text)
                    guessed = text
                    self.advance()
                    consumed = True
                    continue
            break

        if base is None:
            if primitive_words:
                base = TypeDescriptor.primitive(normalize_primitive(primitive_words))
            elif consumed:
                # 암시적 int (static x; const y;)
                base = INT
            elif top_level and self.peek() is not None and self.peek().kind == TokenKind.IDENTIFIER \
                    and self.at("(", 1):
                # K&R 스타일 암시적 int 함수 (main() { ... })
                base = INT
            else:
                raise ParseProblem(f"선언을 해석할 수 없습니다: {self._describe()}", self._here())

        return Specifiers(
            base=base.with_qualifiers(qualifiers),
            storage=storage,
            qualifiers=qualifiers,
            function_specifiers=function_specifiers,
            guessed_name=guessed,
        )

    def _looks_like_type(self, param_mode: bool) -> bool:
        """알 수 없는 식별자를 타입 이름으로 볼지 (FILE *fp, uint8_t x, f(size_t))"""
        nxt = self.peek(1)
        if nxt is None:
            return False
        if nxt.kind == TokenKind.IDENTIFIER:
            return True
        if nxt.kind == TokenKind.KEYWORD and (nxt.text in TYPE_QUALIFIERS or nxt.text in EXTENSION_KEYWORDS):
            return True
        if nxt.is_punct("*"):
            return True
        if param_mode and nxt.kind == TokenKind.PUNCTUATOR and nxt.text in (")", ",", "["):
            return True
        return False

    # =========================================================================
    # struct / union / enum
    # =========================================================================

    def _tag(self) -> Optional[Token]:
        self._skip_extensions()
        tok = self.peek()
        if tok is not None and tok.kind == TokenKind.IDENTIFIER:
            self.advance()
            self._skip_extensions()
            return tok
        return None

    def _record_specifier(self) -> TypeDescriptor:
        keyword = self.advance()
        tag_tok = self._tag()
        type_tag = _RECORD_TAGS[keyword.text]

        if not self.at("{"):
            if tag_tok is None:
                raise ParseProblem(f"{keyword.text} 이름 또는 본문이 필요합니다", self._here())
            if self.at(";"):
                # 전방 선언 (struct Node;)
                self._emit(RecordDecl(
                    name=tag_tok.text, span=keyword.span.merge(tag_tok.span),
                    kind=_RECORD_KINDS[keyword.text], name_span=tag_tok.span, is_complete=False,
                ))
            return TypeDescriptor.named(type_tag, tag_tok.text)

        name = tag_tok.text if tag_tok else self.context.next_anonymous_name(keyword.text)
        record = RecordDecl(
            name=name,
            span=keyword.span,
            kind=_RECORD_KINDS[keyword.text],
            name_span=tag_tok.span if tag_tok else None,
            has_explicit_name=tag_tok is not None,
        )
        self._emit(record)
        try:
            self.expect("{")
            self._record_fields(record)
            close = self.expect("}")
        except ParseProblem:
            self.declarations.remove(record)
            raise
        record.span = keyword.span.merge(close.span)
        record.is_complete = True
        self._skip_extensions()
        return TypeDescriptor.named(type_tag, name)

    def _record_fields(self, record: RecordDecl) -> None:
        while not self.at_end() and not self.at("}"):
            if self.accept(";"):
                continue
            start = self.pos
            try:
                if self.at("_Static_assert"):
                    self.advance()
                    self._skip_balanced("(", ")")
                    self.expect(";")
                    continue
                specs = self._declaration_specifiers()
                if self.accept(";"):
                    # 익명 멤버 (struct { ... };)
                    record.fields.append(FieldDecl(None, specs.base, None, self._span_from(start)))
                    continue
                while True:
                    field_start = self.pos
                    if self.at(":"):
                        declarator = Declarator()
                    else:
                        declarator = self._declarator(abstract_ok=False)
                    field_type = declarator.apply(specs.base)
                    bit_width = None
                    if self.accept(":"):
                        width_tokens = self._collect_until((",", ";"))
                        bit_width = self._source_text(width_tokens)
                    self._skip_extensions()
                    record.fields.append(FieldDecl(
                        declarator.identifier, field_type, bit_width, self._span_from(field_start)
                    ))
                    if self.accept(","):
                        continue
                    self.expect(";")
                    break
            except ParseProblem as e:
                self.diagnostics.error(DiagnosticKind.SYNTAX_ERROR, e.message, e.span)
                self.pos = max(self.pos, start)
                self._recover_in_block()

    def _enum_specifier(self) -> TypeDescriptor:
        keyword = self.advance()
        tag_tok = self._tag()

        if not self.at("{"):
            if tag_tok is None:
                raise ParseProblem("enum 이름 또는 본문이 필요합니다", self._here())
            if self.at(";"):
                self._emit(EnumDecl(
                    name=tag_tok.text, span=keyword.span.merge(tag_tok.span),
                    name_span=tag_tok.span, is_complete=False,
                ))
            return TypeDescriptor.named(TypeTag.ENUM, tag_tok.text)

        name = tag_tok.text if tag_tok else self.context.next_anonymous_name("enum")
        enum = EnumDecl(
            name=name,
            span=keyword.span,
            name_span=tag_tok.span if tag_tok else None,
            has_explicit_name=tag_tok is not None,
        )
        self._emit(enum)
        try:
            self.expect("{")
            self._enum_constants(enum)
            close = self.expect("}")
        except ParseProblem:
            for decl in [enum] + enum.constants:
                if decl in self.declarations:
                    self.declarations.remove(decl)
            raise
        enum.span = keyword.span.merge(close.span)
        enum.is_complete = True
        self._skip_extensions()
        return TypeDescriptor.named(TypeTag.ENUM, name)

    def _enum_constants(self, enum: EnumDecl) -> None:
        next_value: Optional[int] = 0
        while not self.at_end() and not self.at("}"):
            name_tok = self.peek()
            if name_tok.kind != TokenKind.IDENTIFIER:
                raise ParseProblem(f"열거 상수 이름이 필요합니다 (현재: {self._describe()})", name_tok.span)
            self.advance()
            self._skip_extensions()

            explicit = None
            end_span = name_tok.span
            if self.accept("="):
                value_tokens = self._collect_until((",", "}"))
                if not value_tokens:
                    raise ParseProblem(f"열거 상수 값이 필요합니다: {name_tok.text}", self._here())
                explicit = self._source_text(value_tokens)
                value = self._evaluate_constant(value_tokens)
                end_span = value_tokens[-1].span
            else:
                value = next_value

            next_value = value + 1 if value is not None else None
            if value is not None:
                self.enum_values[name_tok.text] = value

            constant = EnumConstantDecl(
                name=name_tok.text,
                span=name_tok.span.merge(end_span),
                name_span=name_tok.span,
                explicit_value=explicit,
                value=value,
                enum_name=enum.name,
            )
            enum.constants.append(constant)
            self._emit(constant)

            if not self.accept(","):
                break

    def _evaluate_constant(self, tokens: Sequence[Token]) -> Optional[int]:
        """앞서 나온 열거 상수를 대입하여 값 계산 (실패 시 None)"""
        parts = []
        for tok in tokens:
            if tok.is_name():
                if tok.text not in self.enum_values:
                    logger.debug(f"열거 상수 값 계산 불가 (알 수 없는 이름 {tok.text})")
                    return None
                parts.append(str(self.enum_values[tok.text]))
            else:
                parts.append(tok.text)
        try:
            value = evaluate_expression(" ".join(parts))
        except ExpressionError as e:
            logger.debug(f"열거 상수 값 계산 불가: {e}")
            return None
        return int(value)

    # =========================================================================
    # 선언자
    # =========================================================================

    def _pointer_qualifiers(self) -> Tuple[str, ...]:
        quals = []
        while not self.at_end():
            tok = self.peek()
            if tok.kind == TokenKind.KEYWORD and tok.text in TYPE_QUALIFIERS:
                quals.append(TYPE_QUALIFIERS[tok.text])
                self.advance()
            elif tok.kind == TokenKind.KEYWORD and tok.text in EXTENSION_KEYWORDS:
                self._skip_extensions()
            else:
                break
        return tuple(quals)

    def _is_nested_declarator(self) -> bool:
        """현재 '(' 가 중첩 선언자의 시작인지 (아니면 함수 파라미터 목록)"""
        nxt = self.peek(1)
        if nxt is None:
            return False
        if nxt.kind == TokenKind.PUNCTUATOR:
            return nxt.text in ("*", "(", "[", "^")
        if nxt.kind == TokenKind.IDENTIFIER:
            return not self.is_type_name(nxt.text)
        return nxt.text in EXTENSION_KEYWORDS

    def _declarator(self, abstract_ok: bool) -> Declarator:
        declarator = Declarator()
        while self.accept("*"):
            declarator.pointers.append(self._pointer_qualifiers())
        self._skip_extensions()

        tok = self.peek()
        if tok is not None and tok.is_punct("(") and self._is_nested_declarator() and \
                not (abstract_ok and self.at(")", 1)):
            self.advance()
            declarator.inner = self._declarator(abstract_ok)
            self.expect(")")
        elif tok is not None and tok.kind == TokenKind.IDENTIFIER:
            self.advance()
            declarator.name = tok.text
            declarator.name_span = tok.span
        elif not abstract_ok:
            raise ParseProblem(f"선언자 이름이 필요합니다 (현재: {self._describe()})", self._here())

        while True:
            if self.at("["):
                declarator.suffixes.append(self._array_suffix())
            elif self.at("("):
                declarator.suffixes.append(("function", self._parameter_list()))
            else:
                break
        self._skip_extensions()
        return declarator

    def _array_suffix(self) -> tuple:
        self.expect("[")
        tokens = [t for t in self._collect_until(("]",))
                  if not (t.kind == TokenKind.KEYWORD and (t.text == "static" or t.text in TYPE_QUALIFIERS))]
        self.expect("]")
        if not tokens:
            return ("array", None, None)
        extent = self._source_text(tokens)
        value = None
        if not (len(tokens) == 1 and tokens[0].is_punct("*")):
            value = self._evaluate_constant(tokens)
        return ("array", extent, value)

    def _parameter_list(self) -> ParamList:
        self.expect("(")
        plist = ParamList()
        if self.accept(")"):
            plist.unspecified = True
            return plist
        if self.at("void") and self.at(")", 1):
            self.advance()
            self.advance()
            return plist

        guessed_names: List[str] = []
        all_guessed = True
        while True:
            if self.accept("..."):
                plist.variadic = True
                self.expect(")")
                break
            param_start = self.pos
            specs = self._declaration_specifiers(param_mode=True)
            declarator = self._declarator(abstract_ok=True)
            param_type = declarator.apply(specs.base)
            plist.params.append(Parameter(declarator.identifier, param_type, self._span_from(param_start)))

            if specs.guessed_name and declarator.is_bare and declarator.identifier is None \
                    and not specs.qualifiers and specs.storage is None:
                guessed_names.append(specs.guessed_name)
            else:
                all_guessed = False

            if self.accept(","):
                continue
            self.expect(")")
            break

        if all_guessed and guessed_names and not plist.variadic:
            plist.identifier_names = guessed_names
        return plist


def parse_declarations(tokens: Sequence[Token], context: TranslationUnitContext) -> ParseResult:
    """토큰 스트림에서 선언을 추출하는 편의 함수"""
    return DeclarationParser(tokens, context).parse()
