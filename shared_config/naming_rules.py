"""
네이밍 규칙 설정
익명 타입 이름 생성, 예약/시스템 식별자 판별 등을 관리합니다.
"""
import re

# =============================================================================
# 익명 타입 이름 패턴
# =============================================================================
# C 식별자와 절대 충돌하지 않도록 꺾쇠 괄호 사용
ANONYMOUS_NAME_FORMAT = "<anonymous {kind} #{index}>"

ANONYMOUS_NAME_PATTERN = re.compile(r'^<anonymous (struct|union|enum) #\d+>$')

# =============================================================================
# 시스템 매크로 (테스트 후보에서 제외)
# =============================================================================
SYSTEM_MACROS = {
    "__FILE__", "__LINE__", "__DATE__", "__TIME__", "__STDC__",
    "__STDC_VERSION__", "__STDC_HOSTED__", "__cplusplus", "NULL", "EOF",
}


# =============================================================================
# 헬퍼 함수
# =============================================================================

def anonymous_type_name(kind: str, index: int) -> str:
    """
    익명 struct/union/enum 에 부여할 합성 이름

    Examples:
        ("struct", 1) -> "<anonymous struct #1>"
    """
    return ANONYMOUS_NAME_FORMAT.format(kind=kind, index=index)


def is_anonymous_name(name: str) -> bool:
    """합성된 익명 타입 이름인지 확인"""
    return bool(name) and bool(ANONYMOUS_NAME_PATTERN.match(name))


def is_reserved_identifier(name: str) -> bool:
    """
    구현 예약 식별자인지 확인 (__name 또는 _Upper)

    Examples:
        __STDC__ -> True
        _Bool    -> True
        _value   -> False
    """
    if not name:
        return False
    if name.startswith("__"):
        return True
    return len(name) > 1 and name[0] == "_" and name[1].isupper()


def is_system_macro(name: str) -> bool:
    """표준/시스템 매크로인지 확인"""
    return name in SYSTEM_MACROS or is_reserved_identifier(name)
