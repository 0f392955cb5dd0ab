"""
엔티티 그래프

번역 단위 하나의 모든 선언과 최종 매크로 테이블을 소유합니다.
(kind, name) 으로 인덱싱하고 처음 등장한 소스 순서대로 순회합니다.
전방 선언과 정의를 하나의 엔티티로 병합하고 typedef 체인을 지연 해석합니다.
"""
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from shared_config.logger import logger

from .declarations import (
    Declaration,
    DeclarationKind,
    EnumConstantDecl,
    EnumDecl,
    FunctionDecl,
    RecordDecl,
    TypedefDecl,
    VariableDecl,
)
from .diagnostics import DiagnosticKind, DiagnosticSink
from .macros import MacroDefinition, MacroTable, MacroUsage
from .type_descriptors import TypeDescriptor, TypeKind, TypeTag

DEFAULT_MAX_TYPEDEF_DEPTH = 64


def types_compatible(a: TypeDescriptor, b: TypeDescriptor) -> bool:
    """
    두 선언의 타입이 충돌하지 않는지 확인

    크기가 지정되지 않은 배열은 같은 원소 타입의 어떤 배열과도 호환됩니다 (extern int a[]; int a[10];).
    """
    if a == b:
        return True
    if a.kind == TypeKind.ARRAY and b.kind == TypeKind.ARRAY:
        if a.extent is None or b.extent is None:
            return types_compatible(a.target, b.target)
        if a.extent_value is not None and a.extent_value == b.extent_value:
            return types_compatible(a.target, b.target)
    return False


class EntityGraph:
    """
    번역 단위의 선언 레지스트리

    Args:
        file_id: 파일 식별자
        macros: 전처리가 끝난 매크로 테이블
        diagnostics: SemanticWarning 기록용
        max_typedef_depth: typedef 체인 추적 상한
    """

    def __init__(
        self,
        file_id: str,
        macros: Optional[MacroTable] = None,
        diagnostics: Optional[DiagnosticSink] = None,
        max_typedef_depth: int = DEFAULT_MAX_TYPEDEF_DEPTH,
    ):
        self.file_id = file_id
        self.macros = macros if macros is not None else MacroTable(diagnostics)
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticSink(file_id)
        self.max_typedef_depth = max_typedef_depth

        self._entities: Dict[Tuple[DeclarationKind, str], Declaration] = {}
        self._typedef_cache: Dict[str, TypeDescriptor] = {}
        self._resolving: List[str] = []
        self._cyclic: Set[str] = set()
        self._too_deep: Set[str] = set()

    # =========================================================================
    # 등록
    # =========================================================================

    def register(self, decl: Declaration) -> Declaration:
        """
        선언 등록

        같은 (kind, name) 이 이미 있으면 기존 엔티티에 병합하고 그 엔티티를 반환합니다.
        순회 순서는 처음 등장한 위치를 유지합니다.
        """
        self._typedef_cache.clear()
        existing = self._entities.get(decl.key)
        if existing is None:
            self._entities[decl.key] = decl
            return decl

        if isinstance(existing, FunctionDecl):
            self._merge_function(existing, decl)
        elif isinstance(existing, VariableDecl):
            self._merge_variable(existing, decl)
        elif isinstance(existing, (RecordDecl, EnumDecl)):
            self._merge_tagged(existing, decl)
        else:
            self._merge_simple(existing, decl)
        return existing

    def register_all(self, declarations: Iterable[Declaration]) -> None:
        for decl in declarations:
            self.register(decl)

    def _conflict(self, decl: Declaration, what: str) -> None:
        self.diagnostics.warning(
            DiagnosticKind.SEMANTIC_WARNING,
            f"{what} 충돌: {decl.name} (나중 선언을 사용합니다)",
            decl.name_span or decl.span,
        )

    def _merge_function(self, existing: FunctionDecl, decl: FunctionDecl) -> None:
        if existing.has_body and decl.has_body:
            self._conflict(decl, "함수 중복 정의")

        same_shape = self._function_shapes_agree(existing, decl)
        if not same_shape:
            self._conflict(decl, "함수 시그니처")

        existing.forward_spans.extend(decl.forward_spans)
        if decl.storage_class == "static" or existing.storage_class is None:
            existing.storage_class = decl.storage_class or existing.storage_class
        for q in decl.qualifiers:
            if q not in existing.qualifiers:
                existing.qualifiers.append(q)

        take_shape = not same_shape or decl.has_body or not existing.has_body
        if take_shape and (decl.has_prototype or not existing.has_prototype):
            existing.return_type = decl.return_type
            existing.parameters = list(decl.parameters)
            existing.is_variadic = decl.is_variadic
            existing.has_prototype = decl.has_prototype
            existing.is_knr = decl.is_knr

        if decl.has_body:
            existing.has_body = True
            existing.definition_span = decl.definition_span or decl.span
            existing.span = decl.span
            existing.name_span = decl.name_span
            if decl.docstring:
                existing.docstring = decl.docstring
        elif decl.docstring and not existing.docstring:
            existing.docstring = decl.docstring

    @staticmethod
    def _function_shapes_agree(a: FunctionDecl, b: FunctionDecl) -> bool:
        if a.return_type != b.return_type:
            return False
        # f() 는 어떤 파라미터 목록과도 충돌하지 않음
        if not a.has_prototype or not b.has_prototype:
            return True
        if a.is_variadic != b.is_variadic or len(a.parameters) != len(b.parameters):
            return False
        return all(types_compatible(p.type, q.type) for p, q in zip(a.parameters, b.parameters))

    def _merge_variable(self, existing: VariableDecl, decl: VariableDecl) -> None:
        if not types_compatible(existing.var_type, decl.var_type):
            self._conflict(decl, "변수 타입")
            existing.var_type = decl.var_type
        elif existing.var_type.kind == TypeKind.ARRAY and existing.var_type.extent is None:
            existing.var_type = decl.var_type

        if existing.initializer is not None and decl.initializer is not None:
            self._conflict(decl, "변수 중복 정의")

        existing.forward_spans.extend(decl.forward_spans)
        if decl.is_definition:
            was_static = existing.is_static
            if not existing.is_definition:
                existing.span = decl.span
                existing.name_span = decl.name_span
            existing.is_definition = True
            if decl.initializer is not None:
                existing.initializer = decl.initializer
            existing.storage_class = "static" if was_static else decl.storage_class
        if decl.docstring and not existing.docstring:
            existing.docstring = decl.docstring

    def _merge_tagged(self, existing, decl) -> None:
        """struct/union/enum: 완전한 정의가 전방 선언을 보강"""
        if not decl.is_complete:
            existing.forward_spans.append(decl.span)
            return

        if existing.is_complete:
            if existing.shape() != decl.shape():
                self._conflict(decl, f"{decl.kind.value} 정의")
            else:
                return
        else:
            existing.forward_spans.append(existing.span)
            existing.span = decl.span
            existing.name_span = decl.name_span

        existing.is_complete = True
        existing.has_explicit_name = decl.has_explicit_name
        if isinstance(existing, RecordDecl):
            existing.fields = list(decl.fields)
        else:
            existing.constants = list(decl.constants)
        if decl.docstring:
            existing.docstring = decl.docstring

    def _merge_simple(self, existing: Declaration, decl: Declaration) -> None:
        """typedef 와 열거 상수"""
        if existing.shape() == decl.shape():
            return
        if isinstance(existing, TypedefDecl):
            self._conflict(decl, "typedef")
            existing.underlying = decl.underlying
        elif isinstance(existing, EnumConstantDecl):
            self._conflict(decl, "열거 상수")
            existing.value = decl.value
            existing.explicit_value = decl.explicit_value
            existing.enum_name = decl.enum_name

    # =========================================================================
    # 조회
    # =========================================================================

    def get(self, kind: DeclarationKind, name: str) -> Optional[Declaration]:
        return self._entities.get((kind, name))

    def find(self, name: str) -> List[Declaration]:
        """이름이 같은 모든 종류의 선언"""
        return [d for (k, n), d in self._entities.items() if n == name]

    @property
    def declarations(self) -> List[Declaration]:
        return list(self._entities.values())

    def of_kind(self, *kinds: DeclarationKind) -> List[Declaration]:
        return [d for d in self._entities.values() if d.kind in kinds]

    def functions(self) -> List[FunctionDecl]:
        return self.of_kind(DeclarationKind.FUNCTION)

    def variables(self) -> List[VariableDecl]:
        return self.of_kind(DeclarationKind.VARIABLE)

    def typedefs(self) -> List[TypedefDecl]:
        return self.of_kind(DeclarationKind.TYPEDEF)

    def records(self) -> List[RecordDecl]:
        return self.of_kind(DeclarationKind.STRUCT, DeclarationKind.UNION)

    def enums(self) -> List[EnumDecl]:
        return self.of_kind(DeclarationKind.ENUM)

    def enum_constants(self) -> List[EnumConstantDecl]:
        return self.of_kind(DeclarationKind.ENUM_CONSTANT)

    def __contains__(self, key) -> bool:
        return key in self._entities

    def __iter__(self):
        return iter(list(self._entities.values()))

    def __len__(self) -> int:
        return len(self._entities)

    # =========================================================================
    # typedef 해석
    # =========================================================================

    def resolve(self, type_: TypeDescriptor) -> TypeDescriptor:
        """
        typedef 참조를 끝까지 따라가 정규 타입 반환

        struct/union/enum 참조는 이름 그대로 둡니다.
        순환하거나 알 수 없는 typedef 는 UNRESOLVED 가 됩니다.
        """
        if type_.kind == TypeKind.NAMED and type_.tag == TypeTag.TYPEDEF:
            return self._resolve_typedef(type_.name).with_qualifiers(type_.qualifiers)
        if type_.kind in (TypeKind.POINTER, TypeKind.ARRAY):
            target = self.resolve(type_.target)
            return type_ if target is type_.target else replace(type_, target=target)
        if type_.kind == TypeKind.FUNCTION:
            return replace(
                type_,
                target=self.resolve(type_.target),
                params=tuple(self.resolve(p) for p in type_.params),
            )
        return type_

    def _resolve_typedef(self, name: str) -> TypeDescriptor:
        cached = self._typedef_cache.get(name)
        if cached is not None:
            return cached

        if name in self._resolving:
            self._report_cycle(self._resolving[self._resolving.index(name):])
            return TypeDescriptor.unresolved(name)

        if len(self._resolving) >= self.max_typedef_depth:
            if name not in self._too_deep:
                self._too_deep.add(name)
                decl = self.get(DeclarationKind.TYPEDEF, name)
                self.diagnostics.warning(
                    DiagnosticKind.SEMANTIC_WARNING,
                    f"typedef 체인이 너무 깁니다 (상한 {self.max_typedef_depth}): {name}",
                    decl.name_span if decl else None,
                )
            return TypeDescriptor.unresolved(name)

        decl = self.get(DeclarationKind.TYPEDEF, name)
        if decl is None:
            logger.debug(f"알 수 없는 typedef: {name}")
            result = TypeDescriptor.unresolved(name)
        else:
            self._resolving.append(name)
            try:
                result = self.resolve(decl.underlying)
            finally:
                self._resolving.pop()
            if name in self._cyclic:
                result = TypeDescriptor.unresolved(name)

        if not self._resolving:
            self._typedef_cache[name] = result
        return result

    def _report_cycle(self, names: List[str]) -> None:
        for name in names:
            if name in self._cyclic:
                continue
            self._cyclic.add(name)
            decl = self.get(DeclarationKind.TYPEDEF, name)
            self.diagnostics.warning(
                DiagnosticKind.SEMANTIC_WARNING,
                f"typedef 순환 참조: {name} ({' -> '.join(names + [names[0]])})",
                decl.name_span if decl else None,
            )

    def is_resolved(self, type_: TypeDescriptor) -> bool:
        return not self.resolve(type_).contains_unresolved()

    def typedef_target(self, name: str) -> Optional[Declaration]:
        """typedef 가 최종적으로 가리키는 struct/union/enum 선언 (없으면 None)"""
        resolved = self._resolve_typedef(name)
        if resolved.kind != TypeKind.NAMED:
            return None
        kind = {
            TypeTag.STRUCT: DeclarationKind.STRUCT,
            TypeTag.UNION: DeclarationKind.UNION,
            TypeTag.ENUM: DeclarationKind.ENUM,
        }.get(resolved.tag)
        return self.get(kind, resolved.name) if kind else None

    # =========================================================================
    # 매크로
    # =========================================================================

    def macro(self, name: str) -> Optional[MacroDefinition]:
        return self.macros.get(name)

    def macro_dependencies(self, name: str, transitive: bool = False) -> List[str]:
        """
        매크로 본문이 참조하는 다른 매크로 이름

        Args:
            name: 매크로 이름
            transitive: True 면 간접 참조까지 포함

        Returns:
            등장 순서의 매크로 이름 목록 (자기 자신 제외)
        """
        result: List[str] = []
        pending = [name]
        visited = {name}
        while pending:
            macro = self.macros.get(pending.pop(0))
            if macro is None:
                continue
            for ref in macro.referenced_names():
                if ref in visited or ref not in self.macros:
                    continue
                visited.add(ref)
                result.append(ref)
                if transitive:
                    pending.append(ref)
        return result

    def macro_usages(self, name: str, direct_only: bool = False) -> List[MacroUsage]:
        """
        번역 단위에서 매크로가 확장된 위치

        Args:
            name: 매크로 이름
            direct_only: True 면 다른 매크로 본문을 거친 간접 확장은 제외

        Returns:
            확장 순서의 사용 위치 목록 (#if 조건식 안의 확장 포함)
        """
        usages = self.macros.usages(name)
        if direct_only:
            return [u for u in usages if u.via is None]
        return usages

    # =========================================================================
    # 출력
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_id": self.file_id,
            "declarations": [d.to_dict() for d in self._entities.values()],
            "macros": self.macros.to_dict(),
            "summary": {
                kind.value: len(self.of_kind(kind)) for kind in DeclarationKind
            },
        }

    def summary(self) -> str:
        counts = ", ".join(f"{kind.value} {len(self.of_kind(kind))}" for kind in DeclarationKind)
        return f"{self.file_id}: {counts}, macro {len(self.macros)}"
