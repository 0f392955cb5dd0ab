"""
번역 단위 컨텍스트

번역 단위 하나를 처리하는 동안의 모든 가변 상태(매크로 테이블, 조건부 스택,
진단, 익명 타입 카운터, 취소 토큰)를 담아 각 단계에 명시적으로 전달합니다.
프로세스 전역 상태는 두지 않습니다.
"""
import threading
from typing import Dict, List, Mapping, Optional

from shared_config.naming_rules import anonymous_type_name

from .config import AnalyzerConfig
from .diagnostics import AnalysisCancelled, DiagnosticSink
from .expansion import MacroExpander
from .macros import BUILTIN_FILE_ID, PREDEFINED_FILE_ID, MacroTable, load_predefined


class CancellationToken:
    """
    협조적 취소 토큰

    다른 스레드에서 cancel() 을 호출하면 분석은 다음 지시문/선언 경계에서 멈춥니다.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled("분석이 취소되었습니다")


class TranslationUnitContext:
    """
    번역 단위 하나의 처리 상태

    Attributes:
        file_id: 파일 식별자
        source_text: 원본 텍스트
        config: 분석 설정 (읽기 전용)
        diagnostics: 진단 수집기
        macros: 매크로 테이블 (내장/미리 정의 매크로가 복사되어 들어감)
        conditional_stack: 열린 조건부 프레임
        expander: 매크로 확장기
    """

    def __init__(
        self,
        source_text: str,
        file_id: str,
        predefined_macros: Optional[Mapping[str, str]] = None,
        config: Optional[AnalyzerConfig] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.source_text = source_text
        self.file_id = file_id
        self.config = config or AnalyzerConfig()
        self.cancel_token = cancel_token
        self.diagnostics = DiagnosticSink(file_id)
        self.macros = MacroTable(self.diagnostics)
        self.conditional_stack: List = []
        self.expander = MacroExpander(
            self.macros,
            self.diagnostics,
            max_depth=self.config.max_expansion_depth,
            file_id=file_id,
        )
        self._anonymous_counters: Dict[str, int] = {}
        self._next_frame_id = 0

        # 내장 → 호출자 정의 순서 (호출자 정의가 내장을 덮어씀)
        load_predefined(self.macros, self.config.builtin_macros, BUILTIN_FILE_ID)
        for key in (predefined_macros or {}):
            name = key.split("(", 1)[0].strip()
            if name in self.macros and self.macros.get(name).file_id == BUILTIN_FILE_ID:
                self.macros.undefine(name)
        load_predefined(self.macros, predefined_macros, PREDEFINED_FILE_ID)

    def check_cancelled(self) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

    def next_frame_id(self) -> int:
        self._next_frame_id += 1
        return self._next_frame_id

    def next_anonymous_name(self, kind: str) -> str:
        """익명 struct/union/enum 합성 이름 (종류별 1부터 증가)"""
        index = self._anonymous_counters.get(kind, 0) + 1
        self._anonymous_counters[kind] = index
        return anonymous_type_name(kind, index)

    def source_slice(self, offset: int, length: int) -> str:
        return self.source_text[offset:offset + length]
