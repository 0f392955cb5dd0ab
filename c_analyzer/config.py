"""
분석기 설정 모듈

AnalyzerConfig 클래스를 통해 분석 동작을 설정합니다.
YAML 파일이나 딕셔너리에서 불러올 수 있습니다.
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping

import yaml

from shared_config.logger import log_step, logger
from shared_config.type_mappings import STANDARD_TYPEDEFS


def _default_builtin_macros() -> Dict[str, str]:
    return {
        "__STDC__": "1",
        "__STDC_VERSION__": "199901L",
        "__STDC_HOSTED__": "1",
    }


@dataclass
class AnalyzerConfig:
    """분석기 설정

    모든 번역 단위가 읽기 전용으로 공유합니다.
    """

    # 매크로 중첩 확장 깊이 상한 (초과 시 치명적 MacroError)
    max_expansion_depth: int = 4096

    # typedef 체인 추적 상한
    max_typedef_depth: int = 64

    # 모든 번역 단위에 미리 정의되는 매크로 (키는 "NAME" 또는 "NAME(params)")
    builtin_macros: Dict[str, str] = field(default_factory=_default_builtin_macros)

    # 선언 없이도 타입으로 인식할 이름 (표준 헤더 typedef)
    known_type_names: FrozenSet[str] = field(default_factory=lambda: STANDARD_TYPEDEFS)

    # 비활성 영역 토큰 보존 여부 (False면 영역 정보만 기록)
    collect_inactive_tokens: bool = True

    # 문서 주석 부착
    attach_docstrings: bool = True
    docstring_max_gap: int = 2

    # True면 본문이 있는 함수만 테스트 후보로 선택
    candidates_require_body: bool = False

    # analyze_many 스레드 수
    max_workers: int = 4

    def __post_init__(self):
        if self.max_expansion_depth < 1:
            raise ValueError(f"max_expansion_depth 는 1 이상이어야 합니다: {self.max_expansion_depth}")
        if self.max_typedef_depth < 1:
            raise ValueError(f"max_typedef_depth 는 1 이상이어야 합니다: {self.max_typedef_depth}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers 는 1 이상이어야 합니다: {self.max_workers}")
        self.known_type_names = frozenset(self.known_type_names)
        self.builtin_macros = dict(self.builtin_macros or {})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalyzerConfig":
        """
        딕셔너리에서 설정 생성 (알 수 없는 키는 경고 후 무시)
        """
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in (data or {}).items():
            if key not in known:
                logger.warning(f"알 수 없는 설정 키 무시: {key}")
                continue
            values[key] = value
        if "known_type_names" in values:
            values["known_type_names"] = frozenset(values["known_type_names"] or ())
        return cls(**values)

    @classmethod
    @log_step("설정 파일 로드")
    def from_yaml(cls, path: str) -> "AnalyzerConfig":
        """
        YAML 파일에서 설정 로드

        Args:
            path: YAML 파일 경로

        Raises:
            FileNotFoundError: 파일이 존재하지 않을 경우
            ValueError: 최상위가 딕셔너리가 아닐 경우
        """
        file_path = Path(path)
        if not file_path.exists():
            logger.error(f"파일을 찾을 수 없습니다: {path}")
            raise FileNotFoundError(f"파일을 찾을 수 없습니다: {path}")

        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if data is None:
            logger.warning("빈 설정 파일입니다, 기본값을 사용합니다")
            return cls()
        if not isinstance(data, dict):
            logger.error("잘못된 설정 형식: 딕셔너리가 필요합니다")
            raise ValueError("잘못된 설정 형식: 딕셔너리가 필요합니다")

        logger.info(f"설정 파일 로드: {path}")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["known_type_names"] = sorted(self.known_type_names)
        return data
