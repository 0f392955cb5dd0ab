"""
shared_config 모듈
C 타입 테이블, 네이밍 규칙, 로깅 설정 등을 중앙 관리합니다.
"""

from .type_mappings import (
    C_KEYWORDS,
    STORAGE_CLASSES,
    TYPE_QUALIFIERS,
    FUNCTION_SPECIFIERS,
    PRIMITIVE_TYPE_KEYWORDS,
    EXTENSION_KEYWORDS,
    STANDARD_TYPEDEFS,
    normalize_primitive,
    is_type_keyword,
)

from .naming_rules import (
    SYSTEM_MACROS,
    anonymous_type_name,
    is_anonymous_name,
    is_reserved_identifier,
    is_system_macro,
)

from .logger import (
    logger,
    get_logger,
    setup_file_logging,
    set_console_level,
    LogStage,
    log_step,
)

__all__ = [
    # type_mappings
    "C_KEYWORDS",
    "STORAGE_CLASSES",
    "TYPE_QUALIFIERS",
    "FUNCTION_SPECIFIERS",
    "PRIMITIVE_TYPE_KEYWORDS",
    "EXTENSION_KEYWORDS",
    "STANDARD_TYPEDEFS",
    "normalize_primitive",
    "is_type_keyword",
    # naming_rules
    "SYSTEM_MACROS",
    "anonymous_type_name",
    "is_anonymous_name",
    "is_reserved_identifier",
    "is_system_macro",
    # logger
    "logger",
    "get_logger",
    "setup_file_logging",
    "set_console_level",
    "LogStage",
    "log_step",
]
