"""
Output Parsing

Robust extraction of JSON values from variably-formatted model output.
"""

from counsellor.output.parser import (
    ResponseParser,
    ParseResult,
    UnparseableResponse,
    strip_code_fences,
    extract_balanced,
    parse_number,
    coerce_index,
    map_by_index,
    EXPECT_OBJECT,
    EXPECT_ARRAY,
    EXPECT_ANY,
)

__all__ = [
    "ResponseParser",
    "ParseResult",
    "UnparseableResponse",
    "strip_code_fences",
    "extract_balanced",
    "parse_number",
    "coerce_index",
    "map_by_index",
    "EXPECT_OBJECT",
    "EXPECT_ARRAY",
    "EXPECT_ANY",
]
