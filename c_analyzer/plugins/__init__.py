"""
c_analyzer 플러그인 패키지

선언 보강 플러그인들을 포함합니다:
- DocstringEnricherPlugin: 선언 위 주석을 docstring 으로 추출
"""

from .docstring_enricher import DocstringEnricherPlugin

__all__ = [
    # 선언 보강 플러그인
    "DocstringEnricherPlugin",
]
