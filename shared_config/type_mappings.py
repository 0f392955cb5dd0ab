"""
C 언어 타입/키워드 테이블
새로운 타입 추가/수정 시 이 파일만 수정하면 됩니다.
"""
from typing import Iterable, Optional

# =============================================================================
# C 키워드 (C99/C11 + 자주 쓰이는 GNU 확장)
# =============================================================================
C_KEYWORDS = frozenset({
    "auto", "break", "case", "char", "const", "continue", "default", "do",
    "double", "else", "enum", "extern", "float", "for", "goto", "if",
    "inline", "int", "long", "register", "restrict", "return", "short",
    "signed", "sizeof", "static", "struct", "switch", "typedef", "union",
    "unsigned", "void", "volatile", "while",
    "_Alignas", "_Alignof", "_Atomic", "_Bool", "_Complex", "_Generic",
    "_Imaginary", "_Noreturn", "_Static_assert", "_Thread_local",
    "__inline", "__inline__", "__restrict", "__restrict__", "__volatile__",
    "__const", "__signed__", "__attribute__", "__extension__", "__asm__",
    "__asm", "asm", "__declspec", "__typeof__", "typeof",
})

# 저장 클래스 지정자
STORAGE_CLASSES = frozenset({
    "typedef", "extern", "static", "auto", "register", "_Thread_local",
})

# 타입 한정자 (철자 변형 → 정규 이름)
TYPE_QUALIFIERS = {
    "const": "const",
    "__const": "const",
    "volatile": "volatile",
    "__volatile__": "volatile",
    "restrict": "restrict",
    "__restrict": "restrict",
    "__restrict__": "restrict",
    "_Atomic": "_Atomic",
}

# 함수 지정자
FUNCTION_SPECIFIERS = {
    "inline": "inline",
    "__inline": "inline",
    "__inline__": "inline",
    "_Noreturn": "_Noreturn",
}

# 기본 타입 지정자 키워드
PRIMITIVE_TYPE_KEYWORDS = frozenset({
    "void", "char", "short", "int", "long", "float", "double",
    "signed", "unsigned", "_Bool", "_Complex", "__signed__",
})

# 건너뛸 GNU/MSVC 확장 키워드 (뒤에 괄호 인자가 올 수 있음)
EXTENSION_KEYWORDS = frozenset({
    "__attribute__", "__extension__", "__declspec", "__asm__", "__asm", "asm",
})

# =============================================================================
# 표준 헤더에서 오는 typedef (include를 따라가지 않으므로 기본 타입으로 취급)
# =============================================================================
STANDARD_TYPEDEFS = frozenset({
    "size_t", "ssize_t", "ptrdiff_t", "wchar_t", "wint_t", "off_t",
    "intptr_t", "uintptr_t", "intmax_t", "uintmax_t",
    "int8_t", "int16_t", "int32_t", "int64_t",
    "uint8_t", "uint16_t", "uint32_t", "uint64_t",
    "int_least8_t", "int_least16_t", "int_least32_t", "int_least64_t",
    "uint_least8_t", "uint_least16_t", "uint_least32_t", "uint_least64_t",
    "int_fast8_t", "int_fast16_t", "int_fast32_t", "int_fast64_t",
    "uint_fast8_t", "uint_fast16_t", "uint_fast32_t", "uint_fast64_t",
    "bool", "FILE", "time_t", "clock_t", "va_list", "__builtin_va_list",
    "pid_t", "fpos_t", "sig_atomic_t", "jmp_buf",
})

# =============================================================================
# 기본 타입 정규화
# =============================================================================

# 정규화된 이름 출력 순서
_SPECIFIER_ORDER = ("signed", "unsigned", "short", "long", "char", "int",
                    "float", "double", "void", "_Bool", "_Complex")


def normalize_primitive(specifiers: Iterable[str]) -> Optional[str]:
    """
    기본 타입 지정자 목록을 정규화된 타입 이름으로 변환

    Examples:
        ["unsigned"]             -> "unsigned int"
        ["long", "unsigned"]     -> "unsigned long"
        ["long", "long", "int"]  -> "long long"
        ["signed", "char"]       -> "signed char"
        ["short", "int"]         -> "short"

    Returns:
        정규화된 이름, 지정자가 없으면 None
    """
    words = ["signed" if s == "__signed__" else s for s in specifiers]
    if not words:
        return None

    long_count = words.count("long")
    rest = [w for w in words if w != "long"]

    has_signed = "signed" in rest
    has_unsigned = "unsigned" in rest
    base = [w for w in rest if w not in ("signed", "unsigned")]

    # short/long이 붙은 int는 int 생략
    if (long_count or "short" in base) and "int" in base:
        base = [w for w in base if w != "int"]

    parts = []
    if has_unsigned:
        parts.append("unsigned")
    elif has_signed and base == ["char"]:
        parts.append("signed")

    parts.extend(["long"] * long_count)
    parts.extend(sorted(set(base), key=lambda w: _SPECIFIER_ORDER.index(w)
                        if w in _SPECIFIER_ORDER else len(_SPECIFIER_ORDER)))

    # signed/unsigned 단독 → int
    if parts in (["unsigned"], []):
        parts.append("int")
    return " ".join(parts)


def is_type_keyword(word: str) -> bool:
    """타입 선언을 시작할 수 있는 키워드인지 확인"""
    return (
        word in PRIMITIVE_TYPE_KEYWORDS
        or word in STORAGE_CLASSES
        or word in TYPE_QUALIFIERS
        or word in FUNCTION_SPECIFIERS
        or word in ("struct", "union", "enum")
    )
