"""
Docstring Enricher 플러그인 모듈입니다.
선언 위의 주석을 docstring으로 추출하여 선언에 붙입니다.
"""
import threading
from bisect import bisect_right
from typing import List, Optional, Tuple

from ..declarations import Declaration, DeclarationKind
from ..interfaces import DeclarationEnricherPlugin
from ..tokens import Token


class _CommentIndex:
    """주석 끝 위치와 선언 끝 위치를 한 번 정렬해 두고 bisect 로 조회"""

    def __init__(self, declarations: List[Declaration], comments: List[Token]):
        self.declarations = declarations
        self.comments = comments
        self.size = (len(declarations), len(comments))

        self.sorted_comments = sorted(comments, key=lambda c: c.span.offset)
        self.comment_ends = [c.span.offset + c.span.length for c in self.sorted_comments]

        ends = sorted(
            (d.span.offset + d.span.length, d.span.end_line) for d in declarations if d.span is not None
        )
        self.decl_ends = [end for end, _ in ends]
        self.decl_end_lines = [line for _, line in ends]

    def matches(self, declarations: List[Declaration], comments: List[Token]) -> bool:
        return (
            self.declarations is declarations
            and self.comments is comments
            and self.size == (len(declarations), len(comments))
        )

    def previous_end(self, offset: int) -> Optional[Tuple[int, int]]:
        """offset 이전에 끝나는 선언 중 가장 늦게 끝나는 위치 (offset, line)"""
        i = bisect_right(self.decl_ends, offset) - 1
        if i < 0:
            return None
        return self.decl_ends[i], self.decl_end_lines[i]

    def comments_before(self, offset: int):
        """offset 이전에 끝나는 주석을 가까운 것부터"""
        i = bisect_right(self.comment_ends, offset) - 1
        while i >= 0:
            yield self.sorted_comments[i]
            i -= 1


class DocstringEnricherPlugin(DeclarationEnricherPlugin):
    """
    선언 위의 주석을 docstring으로 추출하여 선언을 보강합니다.

    이 플러그인은:
    - 선언 시작 위치 바로 위에 있는 연속된 주석들을 찾습니다
    - 블록 주석(/* */)과 라인 주석(//)을 모두 지원합니다
    - 이전 선언과 같은 라인에서 시작하는 주석(꼬리 주석)은 제외합니다

    prepare() 로 만든 색인은 스레드별로 보관하므로 analyze_many 에서 공유해도 됩니다.
    """

    # 주석과 선언 사이의 최대 허용 간격 (줄 수)
    MAX_GAP = 2

    def __init__(self, max_gap: Optional[int] = None):
        self.max_gap = self.MAX_GAP if max_gap is None else max_gap
        self._local = threading.local()

    def can_handle(self, decl: Declaration) -> bool:
        """열거 상수를 제외한 선언을 처리합니다."""
        return decl.kind != DeclarationKind.ENUM_CONSTANT

    def prepare(self, declarations: List[Declaration], comments: List[Token]) -> None:
        self._local.index = _CommentIndex(declarations, comments)

    def finish(self) -> None:
        self._local.index = None

    def enrich(self, decl: Declaration, declarations: List[Declaration], comments: List[Token]) -> Declaration:
        """
        선언에 docstring을 추가합니다.

        Args:
            decl: 보강할 선언
            declarations: 파싱된 모든 선언
            comments: 주석 토큰 목록

        Returns:
            docstring이 추가된 선언
        """
        if not comments:
            return decl
        docstring = self._get_preceding_docstring(decl, self._index_for(declarations, comments))
        if docstring:
            decl.docstring = docstring
        return decl

    def _index_for(self, declarations: List[Declaration], comments: List[Token]) -> _CommentIndex:
        index = getattr(self._local, "index", None)
        if index is not None and index.matches(declarations, comments):
            return index
        return _CommentIndex(declarations, comments)

    def _get_preceding_docstring(self, decl: Declaration, index: _CommentIndex) -> Optional[str]:
        """
        선언 바로 위에 있는 연속된 주석들을 docstring으로 추출합니다.

        Returns:
            연속된 주석들을 합친 docstring, 없으면 None
        """
        previous = index.previous_end(decl.span.offset)
        lower_offset, previous_line = previous if previous else (0, 0)

        preceding = []
        expected_end_line = decl.span.line

        # 선언에 가까운 주석부터 역순 탐색
        for comment in index.comments_before(decl.span.offset):
            if comment.span.offset < lower_offset or comment.span.line <= previous_line:
                break

            gap = expected_end_line - comment.span.end_line
            if gap <= self.max_gap:
                preceding.append(comment)
                expected_end_line = comment.span.line
            else:
                break

        if not preceding:
            return None

        # 순서를 원래대로 복원 (위에서 아래로)
        preceding.reverse()
        return "\n".join(c.text for c in preceding)
