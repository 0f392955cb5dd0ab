"""
CAnalyzer 통합 테스트 (sample.c 전체 분석, 병렬 분석, 취소, 직렬화)
"""
import json
from pathlib import Path

import pytest

from c_analyzer import CAnalyzer, analyze, analyze_many
from c_analyzer.candidates import CandidateKind
from c_analyzer.context import CancellationToken
from c_analyzer.declarations import DeclarationKind
from c_analyzer.diagnostics import DiagnosticKind
from c_analyzer.interfaces import DeclarationEnricherPlugin
from c_analyzer.tokens import tokens_to_text
from c_analyzer.type_descriptors import TypeKind, TypeTag

SAMPLE_PATH = Path(__file__).parent / "test_data" / "sample.c"


@pytest.fixture(scope="module")
def sample_result():
    source = SAMPLE_PATH.read_text(encoding="utf-8")
    return analyze(source, "sample.c")


class TestSampleFile:
    """sample.c 분석 결과 테스트"""

    def test_completes_without_diagnostics(self, sample_result):
        assert sample_result.aborted is False
        assert sample_result.cancelled is False
        assert sample_result.diagnostics == []

    def test_includes(self, sample_result):
        assert [(i.path, i.is_system) for i in sample_result.includes] == [
            ("stdio.h", True), ("stdlib.h", True), ("string.h", True),
        ]

    def test_functions(self, sample_result):
        functions = sample_result.entity_graph.functions()
        assert [f.name for f in functions] == [
            "initialize", "add", "multiply", "copyString", "printStudent", "getNextDay", "main",
        ]
        assert all(f.has_body for f in functions)

    def test_signatures(self, sample_result):
        graph = sample_result.entity_graph
        assert graph.get(DeclarationKind.FUNCTION, "copyString").signature() == \
            "char *copyString(const char *source)"
        assert graph.get(DeclarationKind.FUNCTION, "printStudent").signature() == \
            "void printStudent(const Student *student)"
        assert graph.get(DeclarationKind.FUNCTION, "main").signature() == \
            "int main(int argc, char **argv)"

    def test_typedef_targets(self, sample_result):
        graph = sample_result.entity_graph
        day = graph.typedef_target("DayOfWeek")
        assert day.kind == DeclarationKind.ENUM
        assert day.name == "<anonymous enum #1>"
        assert [c.value for c in day.constants] == list(range(7))

        student = graph.typedef_target("Student")
        assert student.name == "<anonymous struct #1>"
        assert student.field_names() == ["id", "name", "score"]
        assert student.fields[1].array_extent == "50"

    def test_variables(self, sample_result):
        graph = sample_result.entity_graph
        assert [v.name for v in graph.variables()] == [
            "g_counter", "g_pi", "g_buffer", "g_initialized", "g_debugMode",
        ]
        buffer = graph.get(DeclarationKind.VARIABLE, "g_buffer")
        assert buffer.is_static
        assert buffer.var_type.extent == "MAX_SIZE"
        assert buffer.var_type.extent_value == 100
        assert graph.get(DeclarationKind.VARIABLE, "g_pi").is_const
        assert graph.get(DeclarationKind.VARIABLE, "g_debugMode").initializer == "1"

    def test_conditionals_and_inactive_regions(self, sample_result):
        assert [r.start_line for r in sample_result.inactive_regions] == [29, 58, 193]
        assert len(sample_result.conditionals) == 6

    def test_active_log_definition(self, sample_result):
        log = sample_result.macro_table.get("LOG")
        assert log.body_text == 'printf("[LOG] %s\\n", msg)'
        assert log.span.line == 27

    def test_macro_expansion_in_body(self, sample_result):
        expanded = [t for t in sample_result.tokens if t.expanded_from == "MAX"]
        assert tokens_to_text(expanded) == "((10) > (20) ? (10) : (20))"
        assert {t.line for t in expanded} == {171}

    def test_docstrings(self, sample_result):
        graph = sample_result.entity_graph
        assert graph.get(DeclarationKind.FUNCTION, "initialize").docstring == \
            "/**\n * Initialize the application\n */"
        assert graph.get(DeclarationKind.FUNCTION, "add").docstring.startswith("/**\n * Add two integers")
        assert graph.get(DeclarationKind.FUNCTION, "main").docstring == "/**\n * Main function\n */"

    def test_candidates(self, sample_result):
        assert [(c.name, c.kind) for c in sample_result.candidates] == [
            ("MAX_SIZE", CandidateKind.MACRO_CONSTANT),
            ("MIN_SIZE", CandidateKind.MACRO_CONSTANT),
            ("PI", CandidateKind.MACRO_CONSTANT),
            ("MAX", CandidateKind.MACRO_FUNCTION),
            ("MIN", CandidateKind.MACRO_FUNCTION),
            ("SQR", CandidateKind.MACRO_FUNCTION),
            ("PRINT_DEBUG", CandidateKind.MACRO_FUNCTION),
            ("DEBUG", CandidateKind.MACRO_CONSTANT),
            ("LOG", CandidateKind.MACRO_FUNCTION),
            ("initialize", CandidateKind.FUNCTION),
            ("add", CandidateKind.FUNCTION),
            ("multiply", CandidateKind.FUNCTION),
            ("copyString", CandidateKind.FUNCTION),
            ("printStudent", CandidateKind.FUNCTION),
            ("getNextDay", CandidateKind.FUNCTION),
            ("main", CandidateKind.FUNCTION),
        ]

    def test_candidate_details(self, sample_result):
        found = {c.name: c for c in sample_result.candidates}
        assert found["MAX_SIZE"].value == 100
        assert found["PI"].value == pytest.approx(3.14159)
        assert found["initialize"].line == 62
        assert found["getNextDay"].resolved_return_type.kind == TypeKind.NAMED
        assert found["getNextDay"].resolved_return_type.tag == TypeTag.ENUM
        assert found["printStudent"].canonical_signature == \
            "void printStudent(const <anonymous struct #1> *student)"

    def test_to_dict_is_json_serializable(self, sample_result):
        data = sample_result.to_dict()
        text = json.dumps(data)
        assert data["summary"]["candidates"] == 16
        assert "copyString" in text


class TestPartialResults:
    """치명적 오류와 취소 시 부분 결과 테스트"""

    def test_unterminated_conditional(self):
        result = analyze("int kept(void);\n#if 1\nint also_kept;\n", "t.c")
        assert result.aborted
        assert result.has_fatal_errors
        assert [d.name for d in result.declarations] == ["kept", "also_kept"]
        assert result.diagnostics_of(DiagnosticKind.CONDITIONAL_ERROR)

    def test_unterminated_comment(self):
        result = analyze("int a;\n/* never closed", "t.c")
        assert result.aborted
        assert [d.name for d in result.declarations] == ["a"]
        assert result.diagnostics_of(DiagnosticKind.LEXICAL_ERROR)[0].is_fatal

    def test_cancelled_before_start(self):
        token = CancellationToken()
        token.cancel()
        result = analyze("#define A 1\nint a;", "t.c", cancel_token=token)
        assert result.cancelled
        assert result.declarations == []
        assert result.candidates == []

    def test_non_fatal_errors(self):
        result = analyze("#error stop\nint a;\nint 1;\n", "t.c")
        assert not result.aborted
        assert result.has_errors
        assert not result.has_fatal_errors
        assert [d.name for d in result.declarations] == ["a"]


class TestPredefinedMacros:
    """analyze 의 미리 정의 매크로 테스트"""

    def test_feature_flag(self):
        text = "#ifdef FEATURE\nint feature_on(void);\n#endif\n"
        assert analyze(text, "f.c").declarations == []
        result = analyze(text, "f.c", {"FEATURE": ""})
        assert [d.name for d in result.declarations] == ["feature_on"]

    def test_usage_serialized(self):
        result = analyze("int size = LIMIT;\n", "f.c", {"LIMIT": "64"})
        usages = result.to_dict()["macro_usages"]["LIMIT"]
        assert len(usages) == 1
        assert usages[0]["span"]["file_id"] == "f.c"
        assert usages[0]["span"]["line"] == 1
        assert "via" not in usages[0]
        assert result.entity_graph.macro_usages("LIMIT")[0].name == "LIMIT"


class TestAnalyzeMany:
    """병렬 분석 테스트"""

    def test_results_in_input_order(self):
        units = {
            "a.c": "int a(void);",
            "b.c": "#if 1\nint b;\n",
            "c.c": "#define C 3\n",
        }
        results = analyze_many(units, max_workers=3)
        assert list(results) == ["a.c", "b.c", "c.c"]
        assert results["b.c"].aborted
        assert not results["a.c"].aborted
        assert [c.name for c in results["c.c"].candidates] == ["C"]

    def test_units_are_isolated(self):
        units = [("one.c", "#define SHARED 1\n"), ("two.c", "#ifdef SHARED\nint leaked;\n#endif\n")]
        results = CAnalyzer().analyze_many(units, max_workers=2)
        assert results["two.c"].declarations == []

    def test_predefined_mapping_shared_read_only(self):
        macros = {"LEVEL": "2"}
        units = {f"u{i}.c": "#undef LEVEL\n#define LEVEL 5\nint v = LEVEL;" for i in range(4)}
        results = analyze_many(units, macros)
        assert macros == {"LEVEL": "2"}
        assert all(not r.aborted for r in results.values())


class TestPlugins:
    """플러그인 실패 처리 테스트"""

    def test_failing_plugin_does_not_abort(self):
        class ExplodingPlugin(DeclarationEnricherPlugin):
            def can_handle(self, decl):
                return True

            def enrich(self, decl, declarations, comments):
                raise RuntimeError("boom")

        analyzer = CAnalyzer()
        analyzer.plugins["declaration_enricher"].append(ExplodingPlugin())
        result = analyzer.analyze("/* doc */\nint f(void);", "t.c")
        assert result.entity_graph.get(DeclarationKind.FUNCTION, "f").docstring == "/* doc */"
