"""CSV rendering for exported tables."""

import csv
import io
from typing import Iterable, Sequence

# UTF-8 byte-order marker so spreadsheet applications detect the encoding
BOM = "\ufeff"


def encode_row(cells: Sequence[str]) -> str:
    """
    Render one row.

    Cells containing a comma, line break or double quote are quoted with inner
    quotes doubled; every other cell is written verbatim.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(["" if cell is None else str(cell) for cell in cells])
    line = buffer.getvalue()[:-1]
    # csv quotes a lone empty field to keep it distinguishable from an empty row
    if line == '""':
        return ""
    return line


def encode_csv(header: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    """
    Encode a header and data rows as BOM-prefixed CSV text.

    Rows are joined with ``\\n`` and there is no trailing newline. Knows nothing
    about the domain; any table of strings works.
    """
    lines = [encode_row(header)]
    lines.extend(encode_row(row) for row in rows)
    return BOM + "\n".join(lines)
