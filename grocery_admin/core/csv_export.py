# grocery_admin/core/csv_export.py
import csv
import io
from collections.abc import Iterable, Iterator, Sequence

from fastapi.responses import StreamingResponse


def iter_csv(header: Sequence[str], rows: Iterable[Sequence]) -> Iterator[str]:
    """Yield CSV text line by line (header first)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    for row in (header, *rows):
        writer.writerow(row)
        yield buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)


def csv_response(filename: str, header: Sequence[str], rows: Iterable[Sequence]) -> StreamingResponse:
    """
    Stream rows as a CSV download.
    """
    return StreamingResponse(
        iter_csv(header, rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def money(value: float | None) -> str:
    """Two-decimal amount, the format used by every export."""
    return f"{float(value or 0):.2f}"
