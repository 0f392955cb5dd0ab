"""
타입 기술자(TypeDescriptor) 정의

재귀적인 불변 타입 표현입니다. struct/typedef 참조는 이름으로만 가리키며
실제 선언은 EntityGraph 에서 조회합니다 (자기 참조 구조체도 순환 소유가 생기지 않음).
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from shared_config.naming_rules import is_anonymous_name

from .expression import parse_integer_literal
from .patterns import PATTERN_INTEGER_LITERAL


class TypeKind(Enum):
    """타입 형태"""
    PRIMITIVE = "primitive"
    POINTER = "pointer"
    ARRAY = "array"
    NAMED = "named"            # struct/union/enum/typedef 이름 참조
    FUNCTION = "function"      # 함수 포인터의 대상
    UNRESOLVED = "unresolved"


class TypeTag(Enum):
    """NAMED 타입의 이름 공간"""
    STRUCT = "struct"
    UNION = "union"
    ENUM = "enum"
    TYPEDEF = "typedef"


@dataclass(frozen=True)
class TypeDescriptor:
    """
    타입 기술자

    Attributes:
        kind: 타입 형태
        name: PRIMITIVE 이름(정규화), NAMED/UNRESOLVED 대상 이름
        tag: NAMED 의 이름 공간
        target: POINTER/ARRAY 의 대상, FUNCTION 의 반환 타입
        extent: ARRAY 크기 텍스트 (없으면 None)
        extent_value: 정수 리터럴 크기의 값
        params: FUNCTION 파라미터 타입
        variadic: FUNCTION 가변 인자 여부
        qualifiers: 이 단계의 한정자 (const, volatile ...)
    """
    kind: TypeKind
    name: Optional[str] = None
    tag: Optional[TypeTag] = None
    target: Optional["TypeDescriptor"] = None
    extent: Optional[str] = None
    extent_value: Optional[int] = None
    params: Tuple["TypeDescriptor", ...] = ()
    variadic: bool = False
    qualifiers: Tuple[str, ...] = ()

    # =========================================================================
    # 생성 헬퍼
    # =========================================================================

    @classmethod
    def primitive(cls, name: str, qualifiers: Iterable[str] = ()) -> "TypeDescriptor":
        return cls(TypeKind.PRIMITIVE, name=name, qualifiers=_normalize_qualifiers(qualifiers))

    @classmethod
    def pointer(cls, target: "TypeDescriptor", qualifiers: Iterable[str] = ()) -> "TypeDescriptor":
        return cls(TypeKind.POINTER, target=target, qualifiers=_normalize_qualifiers(qualifiers))

    @classmethod
    def array(cls, target: "TypeDescriptor", extent: Optional[str] = None,
              extent_value: Optional[int] = None) -> "TypeDescriptor":
        if extent_value is None and extent is not None and PATTERN_INTEGER_LITERAL.match(extent):
            extent_value = parse_integer_literal(extent)
        return cls(TypeKind.ARRAY, target=target, extent=extent, extent_value=extent_value)

    @classmethod
    def named(cls, tag: TypeTag, name: str, qualifiers: Iterable[str] = ()) -> "TypeDescriptor":
        return cls(TypeKind.NAMED, name=name, tag=tag, qualifiers=_normalize_qualifiers(qualifiers))

    @classmethod
    def function(cls, return_type: "TypeDescriptor", params: Iterable["TypeDescriptor"] = (),
                 variadic: bool = False) -> "TypeDescriptor":
        return cls(TypeKind.FUNCTION, target=return_type, params=tuple(params), variadic=variadic)

    @classmethod
    def unresolved(cls, name: Optional[str] = None) -> "TypeDescriptor":
        return cls(TypeKind.UNRESOLVED, name=name)

    # =========================================================================
    # 조회
    # =========================================================================

    @property
    def is_const(self) -> bool:
        return "const" in self.qualifiers

    @property
    def is_typedef_ref(self) -> bool:
        return self.kind == TypeKind.NAMED and self.tag == TypeTag.TYPEDEF

    def with_qualifiers(self, qualifiers: Iterable[str]) -> "TypeDescriptor":
        """한정자를 추가한 사본 (배열은 원소 타입에 적용)"""
        extra = tuple(qualifiers)
        if not extra:
            return self
        if self.kind == TypeKind.ARRAY and self.target is not None:
            return replace(self, target=self.target.with_qualifiers(extra))
        return replace(self, qualifiers=_normalize_qualifiers(self.qualifiers + extra))

    def contains_unresolved(self) -> bool:
        return any(t.kind == TypeKind.UNRESOLVED for t in self.walk())

    def walk(self):
        """자기 자신과 하위 타입을 모두 순회"""
        yield self
        if self.target is not None:
            yield from self.target.walk()
        for p in self.params:
            yield from p.walk()

    # =========================================================================
    # 출력
    # =========================================================================

    def base_spelling(self) -> str:
        quals = " ".join(self.qualifiers)
        if self.kind == TypeKind.PRIMITIVE:
            base = self.name or "int"
        elif self.kind == TypeKind.NAMED:
            if self.tag == TypeTag.TYPEDEF or is_anonymous_name(self.name or ""):
                base = self.name
            else:
                base = f"{self.tag.value} {self.name}"
        else:
            base = self.name or "<unresolved>"
        return f"{quals} {base}" if quals else base

    def to_c(self, declarator: str = "") -> str:
        """
        C 선언 문법으로 출력

        Examples:
            char* , "source"              -> "char *source"
            int(*)(int, char), "cb"       -> "int (*cb)(int, char)"
            int[10], "arr"                -> "int arr[10]"
        """
        decl = declarator
        current = self
        while True:
            if current.kind == TypeKind.POINTER:
                quals = " ".join(current.qualifiers)
                decl = "*" + (f"{quals} " if quals and decl else quals) + decl
                if current.target is not None and current.target.kind in (TypeKind.ARRAY, TypeKind.FUNCTION):
                    decl = f"({decl})"
                current = current.target
            elif current.kind == TypeKind.ARRAY:
                decl = f"{decl}[{current.extent or ''}]"
                current = current.target
            elif current.kind == TypeKind.FUNCTION:
                params = [p.to_c() for p in current.params]
                if current.variadic:
                    params.append("...")
                decl = f"{decl}({', '.join(params) or 'void'})"
                current = current.target
            else:
                base = current.base_spelling()
                return f"{base} {decl}" if decl else base

    @property
    def spelling(self) -> str:
        return self.to_c()

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"kind": self.kind.value, "spelling": self.spelling}
        if self.name is not None:
            d["name"] = self.name
        if self.tag is not None:
            d["tag"] = self.tag.value
        if self.target is not None:
            d["target"] = self.target.to_dict()
        if self.kind == TypeKind.ARRAY:
            d["extent"] = self.extent
            d["extent_value"] = self.extent_value
        if self.kind == TypeKind.FUNCTION:
            d["params"] = [p.to_dict() for p in self.params]
            d["variadic"] = self.variadic
        if self.qualifiers:
            d["qualifiers"] = list(self.qualifiers)
        return d

    def __str__(self) -> str:
        return self.spelling


def _normalize_qualifiers(qualifiers: Iterable[str]) -> Tuple[str, ...]:
    """중복 제거, 등장 순서 유지"""
    seen = []
    for q in qualifiers:
        if q not in seen:
            seen.append(q)
    return tuple(seen)


INT = TypeDescriptor.primitive("int")
VOID = TypeDescriptor.primitive("void")
