"""
c_analyzer.parser 모듈 테스트
"""
import pytest

from c_analyzer.context import CancellationToken, TranslationUnitContext
from c_analyzer.declarations import (
    DeclarationKind,
    EnumConstantDecl,
    EnumDecl,
    FunctionDecl,
    RecordDecl,
    TypedefDecl,
    VariableDecl,
)
from c_analyzer.diagnostics import DiagnosticKind
from c_analyzer.parser import DeclarationParser
from c_analyzer.preprocessor import Preprocessor
from c_analyzer.type_descriptors import TypeKind, TypeTag


def parse(text, cancel_token=None):
    context = TranslationUnitContext(text, "t.c", cancel_token=cancel_token)
    preprocessed = Preprocessor(context).run()
    result = DeclarationParser(preprocessed.tokens, context).parse()
    return result, context


def declarations(text):
    result, _ = parse(text)
    return result.declarations


def single(text, cls):
    decls = [d for d in declarations(text) if isinstance(d, cls)]
    assert len(decls) == 1
    return decls[0]


class TestFunctions:
    """함수 선언/정의 테스트"""

    def test_prototype_signature(self):
        func = single("char *copyString(const char *source);", FunctionDecl)
        assert func.name == "copyString"
        assert func.has_body is False
        assert func.signature() == "char *copyString(const char *source)"
        assert func.parameters[0].name == "source"
        assert func.parameters[0].type.target.is_const

    def test_void_parameter_list(self):
        func = single("int f(void);", FunctionDecl)
        assert func.parameters == []
        assert func.has_prototype is True
        assert func.signature() == "int f(void)"

    def test_unspecified_parameter_list(self):
        func = single("int g();", FunctionDecl)
        assert func.has_prototype is False

    def test_variadic(self):
        func = single("int log_message(const char *fmt, ...);", FunctionDecl)
        assert func.is_variadic
        assert func.signature() == "int log_message(const char *fmt, ...)"

    def test_definition_skips_body(self):
        decls = declarations(
            "static int add(int a, int b)\n{\n    if (a) { return a + b; }\n    return b;\n}\nint after;"
        )
        func, var = decls
        assert isinstance(func, FunctionDecl)
        assert func.has_body
        assert func.is_static
        assert func.definition_span == func.span
        assert (func.span.line, func.span.end_line) == (1, 5)
        assert var.name == "after"

    def test_function_specifiers(self):
        func = single("static inline int sq(int x) { return x * x; }", FunctionDecl)
        assert "inline" in func.qualifiers
        assert func.storage_class == "static"

    def test_knr_definition(self):
        func = single("int add(a, b)\nint a;\nchar *b;\n{ return a; }", FunctionDecl)
        assert func.is_knr
        assert func.has_body
        assert func.has_prototype is False
        assert [p.name for p in func.parameters] == ["a", "b"]
        assert func.parameters[1].type.kind == TypeKind.POINTER

    def test_implicit_int(self):
        func = single("main() { return 0; }", FunctionDecl)
        assert func.return_type.name == "int"
        assert func.has_body

    def test_function_returning_function_pointer(self):
        func = single("void (*signal(int sig, void (*func)(int)))(int);", FunctionDecl)
        assert func.name == "signal"
        assert [p.name for p in func.parameters] == ["sig", "func"]
        assert func.return_type.kind == TypeKind.POINTER
        assert func.return_type.target.kind == TypeKind.FUNCTION
        assert func.signature() == "void (*signal(int sig, void (*func)(int)))(int)"

    def test_unnamed_parameters(self):
        func = single("void take(int, char *);", FunctionDecl)
        assert [p.name for p in func.parameters] == [None, None]
        assert func.signature() == "void take(int, char *)"

    def test_name_span(self):
        func = single("void\nreset(void);", FunctionDecl)
        assert (func.name_span.line, func.name_span.column) == (2, 1)
        assert func.position == (2, 1)


class TestVariables:
    """변수 선언 테스트"""

    def test_multiple_declarators_share_span(self):
        a, b, c = declarations("int a = 1, *b, c[10];")
        assert a.initializer == "1"
        assert b.var_type.kind == TypeKind.POINTER
        assert c.var_type.kind == TypeKind.ARRAY
        assert c.var_type.extent == "10"
        assert c.var_type.extent_value == 10
        assert a.span == b.span == c.span

    def test_extern_is_not_definition(self):
        var = single("extern int counter;", VariableDecl)
        assert var.is_extern
        assert var.is_definition is False

    def test_const_qualifier(self):
        var = single("const float g_pi = 3.14159f;", VariableDecl)
        assert var.is_const
        assert var.qualifiers == ["const"]
        assert var.initializer == "3.14159f"

    def test_array_extent_from_macro(self):
        var = single("#define MAX_SIZE 100\nstatic char buffer[MAX_SIZE];", VariableDecl)
        assert var.var_type.extent == "MAX_SIZE"
        assert var.var_type.extent_value == 100

    def test_array_without_extent(self):
        var = single("extern int table[];", VariableDecl)
        assert var.var_type.extent is None

    def test_brace_initializer(self):
        var = single("int primes[] = { 2, 3, 5 };", VariableDecl)
        assert var.initializer == "{ 2, 3, 5 }"

    def test_function_pointer_variable(self):
        var = single("int (*callback)(int, char);", VariableDecl)
        assert var.var_type.to_c("callback") == "int (*callback)(int, char)"

    def test_standard_typedef_is_known(self):
        var = single("size_t n;", VariableDecl)
        assert var.var_type.kind == TypeKind.PRIMITIVE
        assert var.var_type.name == "size_t"

    def test_unknown_type_name_guessed(self):
        var = single("my_t value;", VariableDecl)
        assert var.var_type.kind == TypeKind.NAMED
        assert var.var_type.tag == TypeTag.TYPEDEF
        assert var.var_type.name == "my_t"

    def test_normalized_primitive(self):
        var = single("unsigned long int big;", VariableDecl)
        assert var.var_type.name == "unsigned long"

    def test_extensions_skipped(self):
        var = single("__attribute__((unused)) static int x __attribute__((aligned(4)));", VariableDecl)
        assert var.name == "x"
        assert var.is_static


class TestTypes:
    """typedef, struct/union, enum 테스트"""

    def test_struct_fields(self):
        record = single("struct Point { int x; int y; };", RecordDecl)
        assert record.kind == DeclarationKind.STRUCT
        assert record.field_names() == ["x", "y"]
        assert record.is_complete

    def test_union(self):
        record = single("union Value { int i; float f; };", RecordDecl)
        assert record.is_union

    def test_bit_fields(self):
        record = single("struct Flags { unsigned int a : 1; unsigned int : 3; int b : 2; };", RecordDecl)
        assert record.field_names() == ["a", None, "b"]
        assert [f.bit_width for f in record.fields] == ["1", "3", "2"]
        assert record.fields[0].type.name == "unsigned int"

    def test_field_array_extent(self):
        record = single("struct Student { char name[50]; int scores[5]; };", RecordDecl)
        assert [f.array_extent for f in record.fields] == ["50", "5"]

    def test_forward_declaration(self):
        record = single("struct Node;", RecordDecl)
        assert record.is_complete is False

    def test_self_referencing_struct(self):
        record = single("struct Node { int value; struct Node *next; };", RecordDecl)
        next_type = record.fields[1].type
        assert next_type.kind == TypeKind.POINTER
        assert next_type.target.tag == TypeTag.STRUCT
        assert next_type.target.name == "Node"

    def test_anonymous_typedef_struct(self):
        decls = declarations("typedef struct { int id; } Student;")
        record = next(d for d in decls if isinstance(d, RecordDecl))
        typedef = next(d for d in decls if isinstance(d, TypedefDecl))
        assert record.name == "<anonymous struct #1>"
        assert record.has_explicit_name is False
        assert typedef.name == "Student"
        assert typedef.underlying.name == record.name

    def test_anonymous_names_are_numbered(self):
        decls = declarations("struct { int a; } x;\nstruct { int b; } y;\nenum { Z } z;")
        names = [d.name for d in decls if d.kind in (DeclarationKind.STRUCT, DeclarationKind.ENUM)]
        assert names == ["<anonymous struct #1>", "<anonymous struct #2>", "<anonymous enum #1>"]

    def test_typedef_name_used_as_type(self):
        decls = declarations("typedef unsigned int uint;\nuint counter;")
        counter = decls[-1]
        assert counter.var_type.is_typedef_ref
        assert counter.var_type.name == "uint"

    def test_function_pointer_typedef(self):
        typedef = single("typedef void (*handler_t)(int);", TypedefDecl)
        assert typedef.underlying.kind == TypeKind.POINTER
        assert typedef.underlying.target.kind == TypeKind.FUNCTION

    def test_enum_values(self):
        decls = declarations("enum Color { RED, GREEN = 5, BLUE, MIX = RED + BLUE };")
        enum = next(d for d in decls if isinstance(d, EnumDecl))
        constants = [d for d in decls if isinstance(d, EnumConstantDecl)]
        assert enum.constant_names() == ["RED", "GREEN", "BLUE", "MIX"]
        assert [c.value for c in constants] == [0, 5, 6, 6]
        assert [c.explicit_value for c in constants] == [None, "5", None, "RED + BLUE"]
        assert all(c.enum_name == "Color" for c in constants)

    def test_enum_value_not_computable(self):
        constants = [d for d in declarations("enum E { A = EXTERNAL_VALUE, B };")
                     if isinstance(d, EnumConstantDecl)]
        assert [c.value for c in constants] == [None, None]

    def test_enum_trailing_comma(self):
        enum = single("enum Mode { ON, OFF, };", EnumDecl)
        assert enum.constant_names() == ["ON", "OFF"]


class TestRecovery:
    """구문 오류 복구 테스트"""

    def test_skip_to_semicolon(self):
        result, context = parse("int a;\nint 123bad;\nint b;")
        assert [d.name for d in result.declarations] == ["a", "b"]
        errors = context.diagnostics.of_kind(DiagnosticKind.SYNTAX_ERROR)
        assert len(errors) == 1
        assert errors[0].line == 2

    def test_skip_balanced_braces(self):
        result, context = parse("int a;\n= { 1, { 2 }, 3 };\nint b;")
        assert [d.name for d in result.declarations] == ["a", "b"]
        assert context.diagnostics.of_kind(DiagnosticKind.SYNTAX_ERROR)

    def test_bad_field_does_not_drop_record(self):
        result, context = parse("struct S { int a; int = 3; int b; };")
        record = next(d for d in result.declarations if isinstance(d, RecordDecl))
        assert record.field_names() == ["a", "b"]
        assert context.diagnostics.of_kind(DiagnosticKind.SYNTAX_ERROR)

    def test_missing_semicolon_after_initializer(self):
        result, context = parse("int counter = 0\nint helper(void) { return 1; }\nint api(int x);")
        assert [d.name for d in result.declarations] == ["helper", "api"]
        assert result.declarations[0].has_body
        errors = context.diagnostics.of_kind(DiagnosticKind.SYNTAX_ERROR)
        assert len(errors) == 1
        assert errors[0].line == 1

    def test_unexpected_brace_in_initializer(self):
        result, context = parse("int a = 1 { 2 };\nint b;")
        assert [d.name for d in result.declarations] == ["b"]
        assert len(context.diagnostics.of_kind(DiagnosticKind.SYNTAX_ERROR)) == 1

    def test_multiline_initializer_and_compound_literal(self):
        result, context = parse(
            "struct P { int x, y; };\n"
            "struct P origin = (struct P){ 0, 0 };\n"
            "int total = 1 +\n    2;"
        )
        variables = [d for d in result.declarations if isinstance(d, VariableDecl)]
        assert [(v.name, v.initializer) for v in variables] == [
            ("origin", "(struct P){ 0, 0 }"),
            ("total", "1 +\n    2"),
        ]
        assert not context.diagnostics.items

    def test_static_assert_and_stray_semicolons(self):
        result, context = parse(";;\n_Static_assert(sizeof(int) == 4, \"int\");\nint ok;")
        assert [d.name for d in result.declarations] == ["ok"]
        assert not context.diagnostics.items


class TestCancellation:
    """파서 취소 테스트"""

    def test_cancelled_before_first_declaration(self):
        token = CancellationToken()
        context = TranslationUnitContext("int a;\nint b;", "t.c", cancel_token=token)
        tokens = Preprocessor(context).run().tokens
        token.cancel()
        result = DeclarationParser(tokens, context).parse()
        assert result.cancelled
        assert result.declarations == []

    @pytest.mark.parametrize("source", ["int a;", "void f(void) {}"])
    def test_not_cancelled(self, source):
        result, _ = parse(source, cancel_token=CancellationToken())
        assert not result.cancelled
        assert len(result.declarations) == 1
