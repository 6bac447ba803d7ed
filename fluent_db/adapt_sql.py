"""Translate rendered $n placeholders into SQLAlchemy text() bind parameters."""

import re
from typing import Any, Dict, Sequence, Tuple

_rx_pg = re.compile(r"'(?:[^']|'')*'|\$(\d+)")
_rx_colon = re.compile(r':(?=\w)')


def adapt_sql(sql: str, values: Sequence[Any]) -> Tuple[str, Dict[str, Any]]:
    """Rewrite $n as :pn and return the matching parameter dict.

    Colons inside quoted literals are escaped so text() does not read them as
    binds, and a bind directly followed by a :: cast gets a separating space.
    """
    seen = set()

    def repl(m: re.Match) -> str:
        if m.group(1) is None:
            return _rx_colon.sub(r'\\:', m.group(0))
        n = int(m.group(1))
        seen.add(n)
        bind = f':p{n}'
        return bind + ' ' if sql.startswith(':', m.end()) else bind
    out = _rx_pg.sub(repl, sql)
    missing = sorted(n for n in seen if n < 1 or n > len(values))
    if missing:
        raise ValueError(f'Missing parameters for placeholders: {missing} ({len(values)} values bound)')
    return out, {f'p{n}': values[n - 1] for n in sorted(seen)}
