"""
분석기 플러그인 인터페이스를 정의하는 모듈입니다.
DeclarationEnricherPlugin: 파싱이 끝난 선언에 추가 정보를 삽입하는 플러그인 기본 클래스
"""
from abc import ABC, abstractmethod
from typing import List

from .declarations import Declaration
from .tokens import Token


class DeclarationEnricherPlugin(ABC):
    """
    추출된 선언을 후처리하여 추가 정보를 삽입하는 플러그인 기본 클래스입니다.

    이 플러그인은 파싱이 완료된 후, 선언이 엔티티 그래프에 등록되기 전에 실행되며
    개별 선언에 메타데이터를 추가하는 데 사용됩니다.
    """

    @abstractmethod
    def can_handle(self, decl: Declaration) -> bool:
        """
        이 플러그인이 주어진 선언을 처리할 수 있는지 확인합니다.

        Args:
            decl: 파서에서 추출한 선언

        Returns:
            처리할 수 있으면 True
        """
        pass

    @abstractmethod
    def enrich(self, decl: Declaration, declarations: List[Declaration], comments: List[Token]) -> Declaration:
        """
        선언에 추가 정보를 삽입합니다.

        Args:
            decl: 보강할 선언
            declarations: 파싱된 모든 선언 (소스 순서, 참조용)
            comments: 활성 영역의 주석 토큰 (소스 순서)

        Returns:
            보강된 선언 (원본을 수정하여 반환)
        """
        pass

    def prepare(self, declarations: List[Declaration], comments: List[Token]) -> None:
        """번역 단위의 enrich 호출 전에 한 번 호출됩니다 (색인 준비용, 기본 동작 없음)."""

    def finish(self) -> None:
        """번역 단위의 enrich 호출이 모두 끝난 뒤 호출됩니다 (기본 동작 없음)."""
