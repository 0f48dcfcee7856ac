"""
Input sanitization utilities for API payloads.
Cleans free-text fields such as expense names before they are stored.
Values are kept verbatim otherwise; escaping for HTML is left to whatever
renders them.
"""

import re
from typing import Optional

_CONTROL_CHARS = re.compile(r'[\x00-\x1F\x7F]')


def sanitize_string(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return _CONTROL_CHARS.sub('', value.strip())
