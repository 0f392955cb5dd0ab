"""
c_analyzer.lexer 모듈 테스트
"""
import pytest

from c_analyzer.diagnostics import DiagnosticKind, DiagnosticSink, Severity, TranslationUnitAborted
from c_analyzer.lexer import Lexer, tokenize
from c_analyzer.tokens import TokenKind, tokens_to_text


def lex(text, sink=None):
    return list(tokenize(text, "t.c", sink))


def kinds_and_texts(text):
    return [(t.kind, t.text) for t in lex(text)]


class TestTokenKinds:
    """토큰 분류 테스트"""

    def test_identifiers_and_keywords(self):
        result = kinds_and_texts("static int counter;")
        assert result == [
            (TokenKind.KEYWORD, "static"),
            (TokenKind.KEYWORD, "int"),
            (TokenKind.IDENTIFIER, "counter"),
            (TokenKind.PUNCTUATOR, ";"),
        ]

    def test_pp_numbers_are_single_tokens(self):
        texts = [t.text for t in lex("10UL 0x1Fu 1.5e-3f .5 0b1010")]
        assert texts == ["10UL", "0x1Fu", "1.5e-3f", ".5", "0b1010"]
        assert all(t.kind == TokenKind.NUMBER for t in lex("10UL 0x1Fu 1.5e-3f"))

    def test_longest_punctuator_match(self):
        texts = [t.text for t in lex("a >>= b ... c->d ## e")]
        assert texts == ["a", ">>=", "b", "...", "c", "->", "d", "##", "e"]

    def test_digraphs_normalized(self):
        texts = [t.text for t in lex("<: :> <% %> %:")]
        assert texts == ["[", "]", "{", "}", "#"]

    def test_string_and_char_literals(self):
        tokens = lex('"a \\"quoted\\" str" L"wide" u8"utf" \'x\' \'\\n\'')
        assert [t.kind for t in tokens] == [
            TokenKind.STRING, TokenKind.STRING, TokenKind.STRING, TokenKind.CHAR, TokenKind.CHAR,
        ]
        assert tokens[0].text == '"a \\"quoted\\" str"'
        assert tokens[4].text == "'\\n'"
        assert tokens[1].text == 'L"wide"'
        assert tokens[2].text == 'u8"utf"'

    def test_prefix_letter_without_quote_is_identifier(self):
        tokens = lex("L u8 U")
        assert [t.kind for t in tokens] == [TokenKind.IDENTIFIER, TokenKind.IDENTIFIER, TokenKind.IDENTIFIER]

    def test_comments_are_tokens(self):
        tokens = lex("int a; // trailing\n/* block\n comment */ int b;")
        comments = [t for t in tokens if t.kind == TokenKind.COMMENT]
        assert [c.text for c in comments] == ["// trailing", "/* block\n comment */"]

    def test_line_comment_continues_after_splice(self):
        tokens = lex("// first \\\nsecond\nint x;")
        assert tokens[0].kind == TokenKind.COMMENT
        assert "second" in tokens[0].text
        assert tokens[1].text == "int"


class TestTokenFlags:
    """at_line_start / leading_space 플래그 테스트"""

    def test_at_line_start(self):
        tokens = lex("#define A 1\n  int x;")
        assert tokens[0].at_line_start is True      # '#'
        assert tokens[1].at_line_start is False     # define
        int_tok = next(t for t in tokens if t.text == "int")
        assert int_tok.at_line_start is True

    def test_leading_space(self):
        tokens = lex("f(x) g (y)")
        paren_after_f = tokens[1]
        paren_after_g = tokens[5]
        assert paren_after_f.leading_space is False
        assert paren_after_g.leading_space is True

    def test_line_splice_joins_lines(self):
        tokens = lex("#define LONG 1 + \\\n  2\nint y;")
        two = next(t for t in tokens if t.text == "2")
        assert two.at_line_start is False
        int_tok = next(t for t in tokens if t.text == "int")
        assert int_tok.at_line_start is True

    def test_comment_keeps_line_start_for_directive(self):
        tokens = [t for t in lex("/* c */ #define X 1") if t.kind != TokenKind.COMMENT]
        assert tokens[0].text == "#"
        assert tokens[0].at_line_start is True


class TestSpans:
    """소스 위치 테스트"""

    def test_line_and_column(self):
        tokens = lex("int a;\n  char *p;")
        p = next(t for t in tokens if t.text == "p")
        assert (p.span.line, p.span.column) == (2, 9)
        assert p.span.file_id == "t.c"

    def test_offset_and_length_cover_source(self):
        text = "int value = 42;"
        for tok in lex(text):
            assert text[tok.span.offset:tok.span.offset + tok.span.length] == tok.text

    def test_multiline_comment_span(self):
        comment = lex("/* a\nb\nc */")[0]
        assert comment.span.line == 1
        assert comment.span.end_line == 3

    def test_merge(self):
        tokens = lex("int a;")
        merged = tokens[0].span.merge(tokens[-1].span)
        assert merged.offset == 0
        assert merged.length == len("int a;")
        assert (merged.end_line, merged.end_column) == (1, 7)


class TestLexicalErrors:
    """어휘 오류 테스트"""

    def test_unterminated_block_comment_is_fatal(self):
        sink = DiagnosticSink("t.c")
        with pytest.raises(TranslationUnitAborted) as exc:
            lex("int a; /* never closed", sink)
        assert exc.value.diagnostic.kind == DiagnosticKind.LEXICAL_ERROR
        assert exc.value.diagnostic.severity == Severity.FATAL

    def test_unterminated_block_comment_without_sink(self):
        tokens = lex("int a; /* never closed")
        assert tokens[-1].kind == TokenKind.COMMENT
        assert tokens[-1].text == "/* never closed"

    def test_unterminated_string_closes_at_line_end(self):
        sink = DiagnosticSink("t.c")
        tokens = lex('char *s = "open\nint x;', sink)
        assert any(t.kind == TokenKind.STRING and t.text == '"open' for t in tokens)
        assert tokens[-1].text == ";"
        errors = sink.of_kind(DiagnosticKind.LEXICAL_ERROR)
        assert len(errors) == 1
        assert errors[0].severity == Severity.ERROR

    def test_unrecognized_character(self):
        sink = DiagnosticSink("t.c")
        tokens = lex("int @x;", sink)
        assert tokens[1].kind == TokenKind.UNRECOGNIZED
        assert tokens[1].text == "@"
        assert sink.of_kind(DiagnosticKind.LEXICAL_ERROR)[0].column == 5

    def test_lexer_is_restartable(self):
        lexer = Lexer("int a;", "t.c")
        assert [t.text for t in lexer] == [t.text for t in lexer]


class TestTokensToText:
    """tokens_to_text 테스트"""

    def test_preserves_spacing(self):
        assert tokens_to_text(lex("((a)  > (b))")) == "((a) > (b))"

    def test_empty(self):
        assert tokens_to_text([]) == ""
