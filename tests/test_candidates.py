"""
c_analyzer.candidates 모듈 테스트
"""
import pytest

from c_analyzer import analyze
from c_analyzer.candidates import CandidateKind, extract_candidates, is_pure_macro_function
from c_analyzer.config import AnalyzerConfig
from c_analyzer.type_descriptors import TypeKind


def candidates(text, config=None, macros=None):
    return analyze(text, "t.c", macros, config=config).candidates


def by_name(items):
    return {c.name: c for c in items}


class TestFunctionCandidates:
    """함수 후보 테스트"""

    def test_signature_and_parameters(self):
        found = by_name(candidates("char *dup(const char *source, unsigned long n);"))
        cand = found["dup"]
        assert cand.kind == CandidateKind.FUNCTION
        assert cand.signature == "char *dup(const char *source, unsigned long n)"
        assert [p.name for p in cand.parameters] == ["source", "n"]
        assert cand.has_body is False

    def test_canonical_signature_resolves_typedefs(self):
        found = by_name(candidates(
            "typedef unsigned int u32;\ntypedef u32 id_t2;\nid_t2 next_id(id_t2 current) { return current + 1; }"
        ))
        cand = found["next_id"]
        assert cand.signature == "id_t2 next_id(id_t2 current)"
        assert cand.canonical_signature == "unsigned int next_id(unsigned int current)"
        assert cand.resolved_return_type.kind == TypeKind.PRIMITIVE
        assert cand.parameters[0].resolved_type.name == "unsigned int"

    def test_unresolved_types_excluded(self):
        found = by_name(candidates(
            "mystery_t make(void);\nvoid use(mystery_t value);\nint fine(int x);"
        ))
        assert list(found) == ["fine"]

    def test_first_appearance_is_prototype(self):
        found = by_name(candidates("int twice(int x);\n\n\nint twice(int x) { return 2 * x; }"))
        assert found["twice"].line == 1
        assert found["twice"].has_body

    def test_static_and_variadic(self):
        found = by_name(candidates("static int logf_(const char *fmt, ...) { return 0; }"))
        cand = found["logf_"]
        assert cand.is_static
        assert cand.is_variadic
        assert cand.signature == "int logf_(const char *fmt, ...)"

    def test_require_body(self):
        config = AnalyzerConfig(candidates_require_body=True)
        found = by_name(candidates("int proto(void);\nint defined_fn(void) { return 0; }", config=config))
        assert list(found) == ["defined_fn"]

    def test_function_pointer_parameter(self):
        found = by_name(candidates("void run(int (*cb)(int), void *ctx);"))
        assert found["run"].signature == "void run(int (*cb)(int), void *ctx)"


class TestMacroCandidates:
    """매크로 후보 테스트"""

    def test_constants(self):
        found = by_name(candidates(
            "#define SIZE 100\n#define SHIFTED (1 << 4)\n#define NEG (-1)\n#define RATIO 2.5f\n"
        ))
        assert {name: c.value for name, c in found.items()} == pytest.approx(
            {"SIZE": 100, "SHIFTED": 16, "NEG": -1, "RATIO": 2.5}
        )
        assert all(c.kind == CandidateKind.MACRO_CONSTANT for c in found.values())

    def test_constant_that_cannot_be_evaluated(self):
        found = by_name(candidates("#define BROKEN (1 / 0)\n"))
        assert found["BROKEN"].kind == CandidateKind.MACRO_CONSTANT
        assert found["BROKEN"].value is None
        assert found["BROKEN"].body == "(1 / 0)"

    def test_non_candidate_object_macros(self):
        found = candidates(
            '#define NAME "str"\n#define FLAG\n#define EXPR (count + 1)\n'
        )
        assert found == []

    def test_pure_function_macro(self):
        found = by_name(candidates("#define SQR(x) ((x) * (x))\n"))
        cand = found["SQR"]
        assert cand.kind == CandidateKind.MACRO_FUNCTION
        assert cand.macro_params == ["x"]
        assert cand.signature == "SQR(x)"
        assert cand.body == "((x) * (x))"

    def test_side_effect_macros_excluded(self):
        found = candidates(
            "#define INC(x) ((x)++)\n"
            "#define SET(x) x = 1\n"
            "#define ADD_TO(x, y) x += y\n"
            "#define STMT(x) do { f(x); } while (0)\n"
            "#define NOTHING(x)\n"
        )
        assert found == []

    def test_variadic_macro_signature(self):
        found = by_name(candidates("#define TRACE(fmt, ...) printf(fmt, __VA_ARGS__)\n"))
        assert found["TRACE"].signature == "TRACE(fmt, ...)"

    def test_predefined_and_system_macros_excluded(self):
        found = candidates("#define __INTERNAL 1\n#define LOCAL 2\n", macros={"EXTERNAL": "3"})
        assert [c.name for c in found] == ["LOCAL"]

    def test_undefined_macro_not_candidate(self):
        assert candidates("#define TEMP 1\n#undef TEMP\n") == []


class TestOrdering:
    """후보 정렬 테스트"""

    def test_source_order(self):
        found = candidates(
            "int late(void);\n#define EARLY 1\n#define SQ(x) ((x)*(x))\nint first(void);"
        )
        assert [c.name for c in found] == ["late", "EARLY", "SQ", "first"]

    def test_extract_candidates_directly(self):
        result = analyze("#define A 1\nint f(void);", "t.c")
        again = extract_candidates(result.entity_graph)
        assert [c.name for c in again] == [c.name for c in result.candidates]

    def test_is_pure_macro_function_rejects_object_like(self):
        result = analyze("#define A 1\n", "t.c")
        assert is_pure_macro_function(result.macro_table.get("A")) is False


class TestSerialization:
    """to_dict 테스트"""

    def test_function_to_dict(self):
        cand = candidates("/** doc */\nint f(int x) { return x; }")[0]
        data = cand.to_dict()
        assert data["kind"] == "function"
        assert data["signature"] == "int f(int x)"
        assert data["parameters"] == [{"name": "x", "type": "int", "resolved_type": "int"}]
        assert data["docstring"] == "/** doc */"
        assert data["span"]["line"] == 2

    def test_macro_to_dict(self):
        data = candidates("#define K 7\n")[0].to_dict()
        assert data["kind"] == "macro_constant"
        assert data["value"] == 7
        assert data["body"] == "7"
        assert "parameters" not in data
