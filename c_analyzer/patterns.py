"""
렉서와 전처리기가 사용하는 정규식 모음
"""
import re

# Identifier: C 식별자 (유니코드 확장 미지원)
PATTERN_IDENTIFIER = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')

# pp-number: 숫자 또는 .숫자 로 시작, 지수 부호와 접미사까지 한 토큰
# 예) 10UL, 0x1Fu, 1.5e-3f, 0b1010, .5
PATTERN_PP_NUMBER = re.compile(r'\.?[0-9](?:[eEpP][+-]|[0-9A-Za-z_.])*')

# 문자열/문자 리터럴 접두사 (L, u, U, u8)
PATTERN_LITERAL_PREFIX = re.compile(r'(?:u8|[LuU])(?=["\'])')

# 구두점: 긴 것부터 매칭
PUNCTUATORS = sorted(
    [
        "%:%:", "...", "<<=", ">>=",
        "->", "++", "--", "<<", ">>", "<=", ">=", "==", "!=", "&&", "||",
        "*=", "/=", "%=", "+=", "-=", "&=", "^=", "|=", "##",
        "<:", ":>", "<%", "%>", "%:",
        "[", "]", "(", ")", "{", "}", ".", "&", "*", "+", "-", "~", "!",
        "/", "%", "<", ">", "^", "|", "?", ":", ";", "=", ",", "#",
    ],
    key=len,
    reverse=True,
)
PATTERN_PUNCTUATOR = re.compile("|".join(re.escape(p) for p in PUNCTUATORS))

# 다이그래프 → 표준 철자
DIGRAPHS = {"<:": "[", ":>": "]", "<%": "{", "%>": "}", "%:": "#", "%:%:": "##"}

# 공백 (개행 제외)
PATTERN_HSPACE = re.compile(r'[ \t\f\v\r]+')

# 라인 연결: 백슬래시 + (공백) + 개행
PATTERN_LINE_SPLICE = re.compile(r'\\[ \t]*\r?\n')

# 라인 주석: 백슬래시-개행이면 다음 줄까지 이어짐
PATTERN_COMMENT_LINE = re.compile(r'//(?:\\\r?\n|[^\n])*')

# 정수 리터럴 (#if 식, 배열 크기, 매크로 상수 판별용)
# Captures: 본체, 접미사
PATTERN_INTEGER_LITERAL = re.compile(
    r'^(0[xX][0-9A-Fa-f]+|0[bB][01]+|[0-9]+)([uUlL]*)$'
)

# 부동소수 리터럴
PATTERN_FLOAT_LITERAL = re.compile(
    r'^(?:[0-9]*\.[0-9]+(?:[eE][+-]?[0-9]+)?|[0-9]+\.(?:[eE][+-]?[0-9]+)?'
    r'|[0-9]+[eE][+-]?[0-9]+)[fFlL]?$'
)

# "NAME(params)" 형태의 미리 정의 매크로 키
# Captures: name, params (optional)
PATTERN_MACRO_KEY = re.compile(r'^\s*([A-Za-z_]\w*)\s*(?:\(([^)]*)\))?\s*$')
