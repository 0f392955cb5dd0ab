"""
C 소스 분석기의 핵심 로직을 담당하는 모듈입니다.
번역 단위 텍스트를 렉서 → 전처리기 → 선언 파서 → 엔티티 그래프 → 테스트 후보 추출기
순서로 통과시키고, 플러그인을 통해 선언을 보강합니다.
"""
import concurrent.futures
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from shared_config.logger import LogStage, logger

from .candidates import TestCandidate, extract_candidates
from .config import AnalyzerConfig
from .context import CancellationToken, TranslationUnitContext
from .declarations import Declaration
from .diagnostics import Diagnostic, DiagnosticKind, Severity
from .entity_graph import EntityGraph
from .macros import MacroTable
from .parser import DeclarationParser
from .plugins.docstring_enricher import DocstringEnricherPlugin
from .preprocessor import ConditionalDirective, InactiveRegion, IncludeDirective, Preprocessor
from .tokens import Token


@dataclass
class AnalysisResult:
    """
    번역 단위 하나의 분석 결과

    Attributes:
        file_id: 파일 식별자
        entity_graph: 선언 레지스트리
        macro_table: 파일 끝 시점의 매크로 테이블
        diagnostics: 기록 순서의 진단 목록
        candidates: 테스트 후보 (소스 순서)
        includes: 기록된 #include
        conditionals: 조건부 지시문 기록
        inactive_regions: 비활성 영역 (파서에 전달되지 않은 토큰)
        aborted: 치명적 진단으로 중단되었는지 (부분 결과)
        cancelled: 취소되었는지 (부분 결과)
    """
    file_id: str
    entity_graph: EntityGraph
    macro_table: MacroTable
    diagnostics: List[Diagnostic] = field(default_factory=list)
    candidates: List[TestCandidate] = field(default_factory=list)
    includes: List[IncludeDirective] = field(default_factory=list)
    conditionals: List[ConditionalDirective] = field(default_factory=list)
    inactive_regions: List[InactiveRegion] = field(default_factory=list)
    tokens: List[Token] = field(default_factory=list)
    aborted: bool = False
    cancelled: bool = False

    @property
    def has_errors(self) -> bool:
        return any(d.severity != Severity.WARNING for d in self.diagnostics)

    @property
    def has_fatal_errors(self) -> bool:
        return any(d.is_fatal for d in self.diagnostics)

    def diagnostics_of(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.kind == kind]

    @property
    def declarations(self) -> List[Declaration]:
        return self.entity_graph.declarations

    def to_dict(self) -> Dict[str, Any]:
        """JSON 으로 직렬화 가능한 딕셔너리 (위치 정보 포함)"""
        return {
            "file_id": self.file_id,
            "aborted": self.aborted,
            "cancelled": self.cancelled,
            "declarations": [d.to_dict() for d in self.entity_graph.declarations],
            "macros": self.macro_table.to_dict(),
            "macro_usages": {
                name: [u.to_dict() for u in self.macro_table.usages(name)]
                for name in self.macro_table.used_names()
            },
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "candidates": [c.to_dict() for c in self.candidates],
            "includes": [i.to_dict() for i in self.includes],
            "conditionals": [c.to_dict() for c in self.conditionals],
            "inactive_regions": [r.to_dict() for r in self.inactive_regions],
            "summary": {
                "declarations": len(self.entity_graph),
                "macros": len(self.macro_table),
                "candidates": len(self.candidates),
                "diagnostics": len(self.diagnostics),
                "tokens": len(self.tokens),
            },
        }


class CAnalyzer:
    """
    C 번역 단위 분석기

    설정과 플러그인만 보관하며 번역 단위별 상태는 매 호출마다 새 컨텍스트에 둡니다.
    따라서 하나의 인스턴스를 여러 스레드에서 동시에 사용할 수 있습니다.
    """

    def __init__(self, config: Optional[AnalyzerConfig] = None):
        logger.debug("CAnalyzer 초기화 시작")
        self.config = config or AnalyzerConfig()

        # 플러그인 딕셔너리 (카테고리별 리스트)
        self.plugins = {
            # 선언 보강 플러그인
            "declaration_enricher": [
                DocstringEnricherPlugin(self.config.docstring_max_gap)
            ] if self.config.attach_docstrings else [],
        }

        total_plugins = sum(len(v) for v in self.plugins.values())
        logger.debug(f"CAnalyzer 초기화 완료 (플러그인: {total_plugins}개)")

    def analyze(
        self,
        source_text: str,
        file_id: str,
        predefined_macros: Optional[Mapping[str, str]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AnalysisResult:
        """
        번역 단위 하나를 분석합니다.

        Args:
            source_text: C 소스 텍스트
            file_id: 진단과 위치 정보에 쓰일 파일 식별자
            predefined_macros: 명령행 -D 에 해당하는 매크로 ("NAME" 또는 "NAME(a,b)" → 본문)
            cancel_token: 협조적 취소 토큰

        Returns:
            AnalysisResult (치명적 오류나 취소 시에도 부분 결과)
        """
        context = TranslationUnitContext(
            source_text,
            file_id,
            predefined_macros=predefined_macros,
            config=self.config,
            cancel_token=cancel_token,
        )

        with LogStage("번역 단위 분석", file=file_id, size=len(source_text)):
            # 1. 전처리 (렉서 포함)
            preprocessed = Preprocessor(context).run()
            cancelled = preprocessed.cancelled

            # 2. 선언 파싱 (중단되어도 그때까지의 토큰은 파싱)
            declarations: List[Declaration] = []
            if not cancelled:
                parsed = DeclarationParser(preprocessed.tokens, context).parse()
                declarations = parsed.declarations
                cancelled = parsed.cancelled

            # 2.5. 선언 보강 플러그인 실행
            self._enrich(declarations, preprocessed.comments)

            # 3. 엔티티 그래프 구성
            with LogStage("엔티티 그래프 구성", file=file_id):
                graph = EntityGraph(
                    file_id,
                    macros=context.macros,
                    diagnostics=context.diagnostics,
                    max_typedef_depth=self.config.max_typedef_depth,
                )
                graph.register_all(declarations)

            # 4. 테스트 후보 추출
            candidates = extract_candidates(graph, file_id, self.config.candidates_require_body)

        result = AnalysisResult(
            file_id=file_id,
            entity_graph=graph,
            macro_table=context.macros,
            diagnostics=context.diagnostics.items,
            candidates=candidates,
            includes=preprocessed.includes,
            conditionals=preprocessed.conditionals,
            inactive_regions=preprocessed.inactive_regions,
            tokens=preprocessed.tokens,
            aborted=preprocessed.aborted,
            cancelled=cancelled,
        )

        if result.aborted or result.cancelled:
            logger.warning(
                f"부분 결과: {file_id} (aborted={result.aborted}, cancelled={result.cancelled})"
            )
        logger.success(f"분석 완료: {graph.summary()}, 후보 {len(candidates)}개, 진단 {len(result.diagnostics)}개")
        return result

    def _enrich(self, declarations: List[Declaration], comments: List[Token]) -> None:
        for plugin in self.plugins["declaration_enricher"]:
            try:
                plugin.prepare(declarations, comments)
            except Exception as e:
                logger.warning(f"Declaration enricher plugin {plugin.__class__.__name__} prepare failed: {e}")
                continue
            for decl in declarations:
                try:
                    if plugin.can_handle(decl):
                        plugin.enrich(decl, declarations, comments)
                except Exception as e:
                    logger.warning(f"Declaration enricher plugin {plugin.__class__.__name__} failed: {e}")
            try:
                plugin.finish()
            except Exception as e:
                logger.warning(f"Declaration enricher plugin {plugin.__class__.__name__} finish failed: {e}")

    def analyze_many(
        self,
        units: Union[Mapping[str, str], Iterable[Tuple[str, str]]],
        predefined_macros: Optional[Mapping[str, str]] = None,
        max_workers: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Dict[str, AnalysisResult]:
        """
        독립된 번역 단위 여러 개를 병렬로 분석합니다.

        Args:
            units: {file_id: source_text} 또는 (file_id, source_text) 목록
            predefined_macros: 모든 단위에 공통으로 적용할 매크로 (읽기 전용)
            max_workers: 스레드 수 (기본: 설정의 max_workers)
            cancel_token: 모든 단위에 공유되는 취소 토큰

        Returns:
            입력 순서의 {file_id: AnalysisResult}
        """
        items = list(units.items()) if isinstance(units, Mapping) else list(units)
        workers = max_workers or self.config.max_workers
        results: Dict[str, AnalysisResult] = {}

        with LogStage("일괄 분석", level="INFO", units=len(items), workers=workers):
            with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {
                    executor.submit(self.analyze, text, file_id, predefined_macros, cancel_token): file_id
                    for file_id, text in items
                }

                for future in concurrent.futures.as_completed(futures):
                    file_id = futures[future]
                    try:
                        results[file_id] = future.result()
                    except Exception as e:
                        logger.error(f"번역 단위 분석 실패: {file_id}: {e}")
                        raise

        return {file_id: results[file_id] for file_id, _ in items}


def analyze(
    source_text: str,
    file_id: str,
    predefined_macros: Optional[Mapping[str, str]] = None,
    config: Optional[AnalyzerConfig] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> AnalysisResult:
    """번역 단위 하나를 분석하는 편의 함수"""
    return CAnalyzer(config).analyze(source_text, file_id, predefined_macros, cancel_token)


def analyze_many(
    units: Union[Mapping[str, str], Iterable[Tuple[str, str]]],
    predefined_macros: Optional[Mapping[str, str]] = None,
    config: Optional[AnalyzerConfig] = None,
    max_workers: Optional[int] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> Dict[str, AnalysisResult]:
    """여러 번역 단위를 병렬로 분석하는 편의 함수"""
    return CAnalyzer(config).analyze_many(units, predefined_macros, max_workers, cancel_token)
