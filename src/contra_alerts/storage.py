from __future__ import annotations
import os
import pandas as pd
from typing import List
from .models import Posting


COLUMNS = ["id", "title", "company", "budget", "url", "posted_at", "notified_at"]


def _ensure_columns(df: pd.DataFrame) -> pd.DataFrame:
    for col in list(df.columns):
        if col not in COLUMNS:
            df = df.drop(columns=[col])
    for col in COLUMNS:
        if col not in df.columns:
            df[col] = None
    return df[COLUMNS]


def append_postings_to_csv(postings: List[Posting], csv_path: str, *, notified_at: str) -> int:
    """Append notified postings to the archive CSV, one row per posting id (latest wins).

    Returns the number of rows in the archive afterwards.
    """
    if not postings:
        return 0
    new_df = pd.DataFrame([{**p.to_row(), "notified_at": notified_at} for p in postings], columns=COLUMNS)
    if os.path.exists(csv_path):
        existing = _ensure_columns(pd.read_csv(csv_path, dtype=str, keep_default_na=False))
        combined = pd.concat([existing, new_df.astype(str)], ignore_index=True)
    else:
        os.makedirs(os.path.dirname(os.path.abspath(csv_path)), exist_ok=True)
        combined = new_df
    combined = (
        combined.drop_duplicates(subset=["id"], keep="last")
        .sort_values(["notified_at", "title"])
        .reset_index(drop=True)
    )
    combined.to_csv(csv_path, index=False)
    return len(combined)
