"""
선언 데이터 모델 정의

Function, Variable, Typedef, Struct/Union, Enum, EnumConstant 선언을 정의합니다.
DeclarationKind 로 구분되는 닫힌 변형(variant)이며 하위 클래스는 __post_init__ 에서 kind 를 고정합니다.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .tokens import SourceSpan
from .type_descriptors import INT, TypeDescriptor, TypeKind


class DeclarationKind(Enum):
    """선언 종류 열거형"""
    FUNCTION = "function"
    VARIABLE = "variable"
    TYPEDEF = "typedef"
    STRUCT = "struct"
    UNION = "union"
    ENUM = "enum"
    ENUM_CONSTANT = "enum_constant"


@dataclass
class Declaration:
    """선언 기본 클래스"""
    name: str
    span: SourceSpan
    kind: DeclarationKind = DeclarationKind.VARIABLE  # 하위 클래스에서 __post_init__으로 재설정
    name_span: Optional[SourceSpan] = None
    storage_class: Optional[str] = None
    qualifiers: List[str] = field(default_factory=list)
    has_explicit_name: bool = True
    docstring: Optional[str] = None

    @property
    def key(self):
        """EntityGraph 인덱스 키"""
        return (self.kind, self.name)

    @property
    def line(self) -> int:
        return self.span.line

    @property
    def position(self):
        """정렬용 (라인, 컬럼)"""
        anchor = self.name_span or self.span
        return anchor.line, anchor.column

    @property
    def is_static(self) -> bool:
        return self.storage_class == "static"

    @property
    def is_extern(self) -> bool:
        return self.storage_class == "extern"

    def shape(self) -> Any:
        """충돌 판정용 형태 (같은 이름의 선언끼리 비교)"""
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "span": self.span.to_dict(),
            "name_span": self.name_span.to_dict() if self.name_span else None,
            "storage_class": self.storage_class,
            "qualifiers": list(self.qualifiers),
            "has_explicit_name": self.has_explicit_name,
            "docstring": self.docstring,
        }


@dataclass
class Parameter:
    """함수 파라미터"""
    name: Optional[str]
    type: TypeDescriptor
    span: Optional[SourceSpan] = None

    def to_c(self) -> str:
        return self.type.to_c(self.name or "")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.to_dict(),
            "span": self.span.to_dict() if self.span else None,
        }


@dataclass
class FunctionDecl(Declaration):
    """함수 선언/정의"""
    return_type: TypeDescriptor = INT
    parameters: List[Parameter] = field(default_factory=list)
    has_body: bool = False
    is_variadic: bool = False
    forward_spans: List[SourceSpan] = field(default_factory=list)
    definition_span: Optional[SourceSpan] = None
    is_knr: bool = False
    has_prototype: bool = True  # False: f() 처럼 파라미터 미지정

    def __post_init__(self):
        self.kind = DeclarationKind.FUNCTION

    @property
    def function_type(self) -> TypeDescriptor:
        return TypeDescriptor.function(
            self.return_type, [p.type for p in self.parameters], self.is_variadic
        )

    def signature(self) -> str:
        """정규화된 선언 텍스트 (예: char *copyString(const char *source))"""
        params = [p.to_c() for p in self.parameters]
        if self.is_variadic:
            params.append("...")
        declarator = f"{self.name}({', '.join(params) or 'void'})"
        return self.return_type.to_c(declarator)

    def shape(self) -> Any:
        return (self.return_type, tuple(p.type for p in self.parameters), self.is_variadic)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({
            "return_type": self.return_type.to_dict(),
            "parameters": [p.to_dict() for p in self.parameters],
            "has_body": self.has_body,
            "is_variadic": self.is_variadic,
            "is_knr": self.is_knr,
            "has_prototype": self.has_prototype,
            "signature": self.signature(),
            "forward_spans": [s.to_dict() for s in self.forward_spans],
            "definition_span": self.definition_span.to_dict() if self.definition_span else None,
        })
        return d


@dataclass
class VariableDecl(Declaration):
    """변수 선언"""
    var_type: TypeDescriptor = INT
    initializer: Optional[str] = None
    is_definition: bool = True
    forward_spans: List[SourceSpan] = field(default_factory=list)

    def __post_init__(self):
        self.kind = DeclarationKind.VARIABLE

    @property
    def is_const(self) -> bool:
        return self.var_type.is_const

    def shape(self) -> Any:
        return self.var_type

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({
            "type": self.var_type.to_dict(),
            "initializer": self.initializer,
            "is_definition": self.is_definition,
            "forward_spans": [s.to_dict() for s in self.forward_spans],
        })
        return d


@dataclass
class TypedefDecl(Declaration):
    """typedef 별칭"""
    underlying: TypeDescriptor = INT

    def __post_init__(self):
        self.kind = DeclarationKind.TYPEDEF

    def shape(self) -> Any:
        return self.underlying

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["underlying"] = self.underlying.to_dict()
        return d


@dataclass
class FieldDecl:
    """구조체/공용체 필드"""
    name: Optional[str]
    type: TypeDescriptor
    bit_width: Optional[str] = None
    span: Optional[SourceSpan] = None

    @property
    def array_extent(self) -> Optional[str]:
        return self.type.extent if self.type.kind == TypeKind.ARRAY else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.to_dict(),
            "array_extent": self.array_extent,
            "bit_width": self.bit_width,
            "span": self.span.to_dict() if self.span else None,
        }


@dataclass
class RecordDecl(Declaration):
    """struct / union 선언"""
    fields: List[FieldDecl] = field(default_factory=list)
    is_complete: bool = False
    forward_spans: List[SourceSpan] = field(default_factory=list)

    def __post_init__(self):
        if self.kind not in (DeclarationKind.STRUCT, DeclarationKind.UNION):
            self.kind = DeclarationKind.STRUCT

    @property
    def is_union(self) -> bool:
        return self.kind == DeclarationKind.UNION

    def field_names(self) -> List[Optional[str]]:
        return [f.name for f in self.fields]

    def shape(self) -> Any:
        if not self.is_complete:
            return None
        return tuple((f.name, f.type, f.bit_width) for f in self.fields)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({
            "fields": [f.to_dict() for f in self.fields],
            "is_complete": self.is_complete,
        })
        return d


@dataclass
class EnumConstantDecl(Declaration):
    """열거 상수"""
    explicit_value: Optional[str] = None
    value: Optional[int] = None
    enum_name: Optional[str] = None

    def __post_init__(self):
        self.kind = DeclarationKind.ENUM_CONSTANT

    def shape(self) -> Any:
        return (self.enum_name, self.value)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({
            "explicit_value": self.explicit_value,
            "value": self.value,
            "enum_name": self.enum_name,
        })
        return d


@dataclass
class EnumDecl(Declaration):
    """enum 선언"""
    constants: List[EnumConstantDecl] = field(default_factory=list)
    is_complete: bool = False
    forward_spans: List[SourceSpan] = field(default_factory=list)

    def __post_init__(self):
        self.kind = DeclarationKind.ENUM

    def constant_names(self) -> List[str]:
        return [c.name for c in self.constants]

    def shape(self) -> Any:
        if not self.is_complete:
            return None
        return tuple((c.name, c.value) for c in self.constants)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({
            "constants": [c.to_dict() for c in self.constants],
            "is_complete": self.is_complete,
        })
        return d
