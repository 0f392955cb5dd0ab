"""
c_analyzer.entity_graph 모듈 테스트 (병합, 충돌, typedef 해석, 매크로 의존성)
"""
import pytest

from c_analyzer.context import TranslationUnitContext
from c_analyzer.declarations import DeclarationKind
from c_analyzer.diagnostics import DiagnosticKind
from c_analyzer.entity_graph import EntityGraph, types_compatible
from c_analyzer.parser import DeclarationParser
from c_analyzer.preprocessor import Preprocessor
from c_analyzer.type_descriptors import INT, TypeDescriptor, TypeKind, TypeTag


def build(text, max_typedef_depth=64):
    context = TranslationUnitContext(text, "t.c")
    tokens = Preprocessor(context).run().tokens
    declarations = DeclarationParser(tokens, context).parse().declarations
    graph = EntityGraph("t.c", macros=context.macros, diagnostics=context.diagnostics,
                        max_typedef_depth=max_typedef_depth)
    graph.register_all(declarations)
    return graph


def semantic_warnings(graph):
    return graph.diagnostics.of_kind(DiagnosticKind.SEMANTIC_WARNING)


class TestRegistration:
    """등록과 순회 순서 테스트"""

    def test_source_order(self):
        graph = build("int b;\nvoid a(void);\nstruct S { int x; };")
        assert [d.name for d in graph] == ["b", "a", "S"]
        assert len(graph) == 3

    def test_same_name_different_kinds(self):
        graph = build("struct item { int id; };\nint item;")
        kinds = {d.kind for d in graph.find("item")}
        assert kinds == {DeclarationKind.STRUCT, DeclarationKind.VARIABLE}
        assert (DeclarationKind.STRUCT, "item") in graph

    def test_accessors(self):
        graph = build(
            "typedef int T;\nenum E { A };\nunion U { int i; };\nT v;\nvoid f(void);"
        )
        assert [d.name for d in graph.typedefs()] == ["T"]
        assert [d.name for d in graph.enums()] == ["E"]
        assert [d.name for d in graph.enum_constants()] == ["A"]
        assert [d.name for d in graph.records()] == ["U"]
        assert [d.name for d in graph.variables()] == ["v"]
        assert [d.name for d in graph.functions()] == ["f"]


class TestFunctionMerge:
    """함수 전방 선언/정의 병합 테스트"""

    def test_prototype_and_definition_merge(self):
        graph = build("int add(int a, int b);\n\nint add(int a, int b) { return a + b; }")
        functions = graph.functions()
        assert len(functions) == 1
        func = functions[0]
        assert func.has_body
        assert func.definition_span.line == 3
        assert [s.line for s in func.forward_spans] == [1]
        assert not semantic_warnings(graph)

    def test_order_follows_first_appearance(self):
        graph = build("void later(void);\nint x;\nvoid later(void) {}")
        assert [d.name for d in graph] == ["later", "x"]

    def test_parameter_names_from_definition(self):
        graph = build("int scale(int, int);\nint scale(int value, int factor) { return value * factor; }")
        func = graph.get(DeclarationKind.FUNCTION, "scale")
        assert [p.name for p in func.parameters] == ["value", "factor"]

    def test_static_storage_is_kept(self):
        graph = build("static int helper(void);\nint helper(void) { return 1; }")
        assert graph.get(DeclarationKind.FUNCTION, "helper").is_static

    def test_signature_conflict_warns(self):
        graph = build("int f(int a);\nint f(char *a) { return 0; }")
        warnings = semantic_warnings(graph)
        assert len(warnings) == 1
        assert warnings[0].line == 2
        func = graph.get(DeclarationKind.FUNCTION, "f")
        assert func.parameters[0].type.kind == TypeKind.POINTER

    def test_unspecified_prototype_is_compatible(self):
        graph = build("int g();\nint g(int x) { return x; }")
        assert not semantic_warnings(graph)
        assert [p.name for p in graph.get(DeclarationKind.FUNCTION, "g").parameters] == ["x"]

    def test_duplicate_definition_warns(self):
        graph = build("int h(void) { return 1; }\nint h(void) { return 2; }")
        assert len(semantic_warnings(graph)) == 1
        assert len(graph.functions()) == 1

    def test_definition_docstring_wins(self):
        graph = EntityGraph("t.c")
        proto = build("int f(void);").get(DeclarationKind.FUNCTION, "f")
        proto.docstring = "/* prototypes */"
        definition = build("\nint f(void) { return 0; }").get(DeclarationKind.FUNCTION, "f")
        definition.docstring = "/** Does f */"
        graph.register(proto)
        graph.register(definition)
        assert graph.get(DeclarationKind.FUNCTION, "f").docstring == "/** Does f */"


class TestVariableAndTypeMerge:
    """변수, 태그 타입, typedef 병합 테스트"""

    def test_extern_then_definition(self):
        graph = build("extern int counter;\nint counter = 5;")
        var = graph.get(DeclarationKind.VARIABLE, "counter")
        assert var.is_definition
        assert var.initializer == "5"
        assert var.span.line == 2
        assert not semantic_warnings(graph)

    def test_unsized_array_takes_extent(self):
        graph = build("extern int table[];\nint table[8];")
        var = graph.get(DeclarationKind.VARIABLE, "table")
        assert var.var_type.extent_value == 8
        assert not semantic_warnings(graph)

    def test_variable_type_conflict(self):
        graph = build("int value;\nchar *value;")
        assert len(semantic_warnings(graph)) == 1
        assert graph.get(DeclarationKind.VARIABLE, "value").var_type.kind == TypeKind.POINTER

    def test_double_initialization_warns(self):
        graph = build("int once = 1;\nint once = 2;")
        assert len(semantic_warnings(graph)) == 1

    def test_forward_struct_completed(self):
        graph = build("struct Node;\nstruct Node *head;\nstruct Node { int v; struct Node *next; };")
        record = graph.get(DeclarationKind.STRUCT, "Node")
        assert record.is_complete
        assert record.field_names() == ["v", "next"]
        assert record.span.line == 3
        assert [s.line for s in record.forward_spans] == [1]
        assert [d.name for d in graph][:2] == ["Node", "head"]

    def test_identical_struct_redefinition_is_silent(self):
        graph = build("struct P { int x; };\nstruct P { int x; };")
        assert not semantic_warnings(graph)

    def test_conflicting_struct_redefinition(self):
        graph = build("struct P { int x; };\nstruct P { char *x; };")
        assert len(semantic_warnings(graph)) == 1

    def test_typedef_redefinition(self):
        same = build("typedef int T;\ntypedef int T;")
        assert not semantic_warnings(same)
        different = build("typedef int T;\ntypedef char T;")
        assert len(semantic_warnings(different)) == 1
        assert different.get(DeclarationKind.TYPEDEF, "T").underlying.name == "char"


class TestTypedefResolution:
    """typedef 해석 테스트"""

    def test_chain_resolves_to_primitive(self):
        graph = build("typedef unsigned int u32;\ntypedef u32 counter_t;\ncounter_t c;")
        var = graph.get(DeclarationKind.VARIABLE, "c")
        resolved = graph.resolve(var.var_type)
        assert resolved.kind == TypeKind.PRIMITIVE
        assert resolved.name == "unsigned int"

    def test_pointer_and_qualifiers_preserved(self):
        graph = build("typedef char byte;\nconst byte *p;")
        resolved = graph.resolve(graph.get(DeclarationKind.VARIABLE, "p").var_type)
        assert resolved.kind == TypeKind.POINTER
        assert resolved.target.name == "char"
        assert resolved.target.is_const

    def test_anonymous_struct_target(self):
        graph = build("typedef struct { int id; } Student;")
        target = graph.typedef_target("Student")
        assert target is not None
        assert target.name == "<anonymous struct #1>"
        resolved = graph.resolve(TypeDescriptor.named(TypeTag.TYPEDEF, "Student"))
        assert resolved.tag == TypeTag.STRUCT

    def test_unknown_typedef_is_unresolved(self):
        graph = build("mystery_t value;")
        var = graph.get(DeclarationKind.VARIABLE, "value")
        assert graph.resolve(var.var_type).kind == TypeKind.UNRESOLVED
        assert graph.is_resolved(var.var_type) is False
        assert not semantic_warnings(graph)

    def test_cycle_reports_once_per_typedef(self):
        graph = build("typedef A B;\ntypedef B A;")
        first = graph.resolve(TypeDescriptor.named(TypeTag.TYPEDEF, "A"))
        second = graph.resolve(TypeDescriptor.named(TypeTag.TYPEDEF, "B"))
        graph.resolve(TypeDescriptor.named(TypeTag.TYPEDEF, "A"))
        assert first.kind == TypeKind.UNRESOLVED
        assert second.kind == TypeKind.UNRESOLVED
        assert len(semantic_warnings(graph)) == 2

    def test_depth_limit(self):
        source = "typedef int T0;\n" + "".join(f"typedef T{i} T{i + 1};\n" for i in range(5))
        graph = build(source, max_typedef_depth=3)
        resolved = graph.resolve(TypeDescriptor.named(TypeTag.TYPEDEF, "T5"))
        assert resolved.contains_unresolved()
        assert len(semantic_warnings(graph)) == 1

    def test_function_types_resolved(self):
        graph = build("typedef int handle;\nhandle open_it(handle h);")
        func = graph.get(DeclarationKind.FUNCTION, "open_it")
        resolved = graph.resolve(func.function_type)
        assert resolved.target == INT
        assert resolved.params == (INT,)


class TestMacroDependencies:
    """매크로 의존성 테스트"""

    SOURCE = (
        "#define BASE 10\n"
        "#define DOUBLE (BASE * 2)\n"
        "#define QUAD (DOUBLE * 2 + BASE)\n"
        "#define SCALE(x) ((x) * QUAD + unknown)\n"
    )

    def test_direct(self):
        graph = build(self.SOURCE)
        assert graph.macro_dependencies("QUAD") == ["DOUBLE", "BASE"]
        assert graph.macro_dependencies("SCALE") == ["QUAD"]

    def test_transitive(self):
        graph = build(self.SOURCE)
        assert graph.macro_dependencies("SCALE", transitive=True) == ["QUAD", "DOUBLE", "BASE"]

    def test_unknown_macro(self):
        graph = build(self.SOURCE)
        assert graph.macro_dependencies("MISSING") == []
        assert graph.macro("BASE").body_text == "10"


class TestMacroUsages:
    """매크로 사용 위치 테스트"""

    SOURCE = (
        "#define BASE 10\n"
        "#define DOUBLE (BASE * 2)\n"
        "#define MAX(a, b) ((a) > (b) ? (a) : (b))\n"
        "#if BASE > 5\n"
        "int limit = DOUBLE;\n"
        "#endif\n"
        "int pick = MAX(BASE, 3);\n"
        "#undef BASE\n"
        "int MAX;\n"
    )

    def test_direct_and_nested_usages(self):
        graph = build(self.SOURCE)
        usages = graph.macro_usages("BASE")
        assert [(u.span.line, u.via) for u in usages] == [(4, None), (5, "DOUBLE"), (7, None)]
        assert [u.span.line for u in graph.macro_usages("BASE", direct_only=True)] == [4, 7]

    def test_function_like_needs_call(self):
        graph = build(self.SOURCE)
        # 9행의 MAX 는 괄호가 없으므로 확장되지 않음
        assert [(u.span.line, u.span.column) for u in graph.macro_usages("MAX")] == [(7, 12)]
        assert graph.macro_usages("DOUBLE")[0].to_dict()["span"]["line"] == 5

    def test_usages_survive_undef(self):
        graph = build(self.SOURCE)
        assert graph.macro("BASE") is None
        assert len(graph.macro_usages("BASE")) == 3
        assert graph.macro_usages("MISSING") == []


class TestTypesCompatible:
    """types_compatible 테스트"""

    @pytest.mark.parametrize("a,b,expected", [
        (INT, INT, True),
        (INT, TypeDescriptor.primitive("char"), False),
        (TypeDescriptor.array(INT), TypeDescriptor.array(INT, "10"), True),
        (TypeDescriptor.array(INT, "10"), TypeDescriptor.array(INT, "0xA"), True),
        (TypeDescriptor.array(INT, "10"), TypeDescriptor.array(INT, "11"), False),
        (TypeDescriptor.pointer(INT), TypeDescriptor.pointer(INT), True),
    ])
    def test_compatibility(self, a, b, expected):
        assert types_compatible(a, b) is expected


class TestTypeWalk:
    """TypeDescriptor.walk / contains_unresolved 테스트"""

    def test_walk_order(self):
        param = TypeDescriptor.pointer(TypeDescriptor.primitive("char"))
        fn = TypeDescriptor.function(INT, [param, TypeDescriptor.array(INT, "4")])
        kinds = [t.kind for t in fn.walk()]
        assert kinds == [
            TypeKind.FUNCTION, TypeKind.PRIMITIVE,
            TypeKind.POINTER, TypeKind.PRIMITIVE,
            TypeKind.ARRAY, TypeKind.PRIMITIVE,
        ]

    def test_unresolved_found_through_nesting(self):
        hidden = TypeDescriptor.pointer(TypeDescriptor.array(TypeDescriptor.unresolved("mystery_t")))
        assert hidden.contains_unresolved()
        assert TypeDescriptor.function(INT, [hidden]).contains_unresolved()
        assert not TypeDescriptor.function(INT, [TypeDescriptor.pointer(INT)]).contains_unresolved()


class TestSerialization:
    """to_dict / summary 테스트"""

    def test_to_dict(self):
        graph = build("#define N 3\nint values[N];")
        data = graph.to_dict()
        assert data["file_id"] == "t.c"
        assert data["summary"]["variable"] == 1
        assert data["declarations"][0]["type"]["extent"] == "N"
        assert data["declarations"][0]["type"]["extent_value"] == 3
        assert "N" in data["macros"]

    def test_summary(self):
        assert build("int a;").summary().startswith("t.c: function 0, variable 1")
