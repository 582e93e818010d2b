from html import escape
from typing import List

import pandas as pd

from app.models.db_models import BookingRecord

COLUMNS = ["id", "name", "email", "subjects", "total", "timestamp"]

COLUMN_LABELS = {
    "id": "ID",
    "name": "Name",
    "email": "Email",
    "subjects": "Subjects",
    "total": "Total",
    "timestamp": "Booked at",
}


def bookings_to_dataframe(records: List[BookingRecord]) -> pd.DataFrame:
    """One row per booking, subjects flattened to the stored ", " form."""
    rows = [
        {
            "id": r.id,
            "name": r.name,
            "email": r.email,
            "subjects": r.subjects_text(),
            "total": r.total,
            "timestamp": r.timestamp.isoformat(),
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=COLUMNS)


def bookings_to_csv(records: List[BookingRecord]) -> str:
    return bookings_to_dataframe(records).to_csv(index=False)


def bookings_to_html(records: List[BookingRecord], title: str = "Bookings") -> str:
    df = bookings_to_dataframe(records).rename(columns=COLUMN_LABELS)
    revenue = int(df["Total"].sum()) if not df.empty else 0

    if df.empty:
        table = "<p>No bookings yet.</p>"
    else:
        table = df.to_html(index=False, border=0, classes="bookings", escape=True)

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{escape(title)}</title>
  <style>
    body {{ font-family: sans-serif; margin: 2rem; }}
    table.bookings {{ border-collapse: collapse; width: 100%; }}
    table.bookings th, table.bookings td {{ border: 1px solid #ccc; padding: 0.4rem 0.6rem; text-align: left; }}
    table.bookings th {{ background: #f3f3f3; }}
  </style>
</head>
<body>
  <h1>{escape(title)}</h1>
  <p>{len(df)} booking(s), revenue {revenue}. <a href="/export">Download CSV</a> | <a href="/backup">Download backup</a></p>
  {table}
</body>
</html>
"""
