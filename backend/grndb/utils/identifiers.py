from __future__ import annotations

import re
from typing import Iterable, Optional


def yearly_prefix(kind: str, year: int) -> str:
    return f"{kind}-{year}-"


def next_sequential_code(existing: Iterable[Optional[str]], *, prefix: str, width: int) -> str:
    """
    Next code of the form ``<prefix><zero-padded counter>``.

    The counter is one past the highest counter already issued under the
    prefix; codes that do not match the pattern are ignored.
    """
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    highest = 0
    for code in existing:
        match = pattern.match(code or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}{highest + 1:0{width}d}"
