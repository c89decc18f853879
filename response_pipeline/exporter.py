"""
Attachment <-> DataFrame conversion and CSV/JSON export.

Rationale:
- Every attachment type flattens to a table, so one DataFrame path serves
  both CSV and JSON downloads.
- Tables built from DataFrames are capped at ROW_LIMIT rows to keep payloads
  predictable.
"""

import logging
from typing import Optional

import pandas as pd

from .config import ROW_LIMIT
from .schemas import VisualizationAttachment
from .utils import make_attachment_id, new_batch_id, safe_json
from .visualization_parser import build_attachment

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("csv", "json")


def attachment_to_dataframe(attachment: VisualizationAttachment) -> pd.DataFrame:
    data = attachment.data

    if attachment.type == "chart":
        if data.get("values"):
            return pd.DataFrame(data["values"]).reindex(columns=["name", "value", "color"]).dropna(axis=1, how="all")
        frame = pd.DataFrame(
            {dataset.get("label", "Series"): dataset["data"] for dataset in data["datasets"]},
            index=data["labels"],
        )
        frame.index.name = "label"
        return frame.reset_index()

    if attachment.type == "table":
        return pd.DataFrame(data["rows"], columns=data["headers"])

    if attachment.type == "timeline":
        return pd.DataFrame.from_records(data["events"], columns=["date", "title", "description"]).dropna(
            axis=1, how="all"
        )

    if attachment.type == "comparison":
        return pd.DataFrame([{"name": item["name"], **item["attributes"]} for item in data["items"]])

    raise ValueError(f"Unsupported attachment type: {attachment.type}")


def export_attachment(attachment: VisualizationAttachment, export_format: str = "csv") -> str:
    """Render an attachment's data as CSV or JSON (records) text."""
    if export_format not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {export_format}")

    frame = attachment_to_dataframe(attachment)
    logger.info(f"Exporting {attachment.type} '{attachment.name}' as {export_format} ({len(frame)} rows)")
    if export_format == "csv":
        return frame.to_csv(index=False)
    return frame.to_json(orient="records")


def table_attachment_from_dataframe(frame: pd.DataFrame, title: Optional[str] = None) -> VisualizationAttachment:
    """
    Wrap a DataFrame as a table attachment.
    - limit rows to ROW_LIMIT
    - numpy scalars become native values, NaN becomes null
    """
    if len(frame) > ROW_LIMIT:
        logger.info(f"Truncating table from {len(frame)} to {ROW_LIMIT} rows")
        frame = frame.head(ROW_LIMIT)

    headers = [str(column) for column in frame.columns]
    rows = [safe_json(list(row)) for row in frame.itertuples(index=False, name=None)]
    config = {"title": title} if title else {}
    return build_attachment("table", {"headers": headers, "rows": rows}, config, make_attachment_id(new_batch_id(), 0))
