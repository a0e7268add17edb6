# job_counter.py
"""
Job number counters for the /newitem modal.

Provides:
- FileJobCounter (JSON file {"last": n}; read, increment, write, no locking)
- DynamoJobCounter (atomic ADD on a DynamoDB item)
- build_job_counter

FileJobCounter does not lock: two modals opened at the same moment can get
the same number. Use DynamoJobCounter where numbers must be unique.
"""
from __future__ import annotations

import json
import logging
import math
import os
from typing import Optional

try:
    import boto3
except Exception:
    boto3 = None

logger = logging.getLogger("job_counter")


class FileJobCounter:
    def __init__(self, path: str):
        self.path = path

    def _read_last(self) -> int:
        if not os.path.exists(self.path):
            return 0
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Job counter %s unreadable (%s); starting from 0", self.path, exc)
            return 0
        last = data.get("last") if isinstance(data, dict) else None
        if isinstance(last, bool) or not isinstance(last, (int, float)) or not math.isfinite(last):
            return 0
        return int(last)

    def next(self) -> int:
        value = self._read_last() + 1
        try:
            with open(self.path, "w", encoding="utf-8") as fh:
                json.dump({"last": value}, fh, indent=2)
        except OSError:
            logger.exception("Failed to write job counter %s", self.path)
        return value


class DynamoJobCounter:
    """Atomic counter kept in a single DynamoDB item (table default 'job_counters')."""

    def __init__(self, table_name: Optional[str], region: str, key: str = "newitem"):
        table_name = table_name or "job_counters"
        if not boto3:
            raise RuntimeError("boto3 is required to access DynamoDB.")
        self.table_name = table_name
        self.region = region
        self.key = key
        resource = boto3.resource("dynamodb", region_name=region)
        self._table = resource.Table(table_name)

    def next(self) -> int:
        try:
            response = self._table.update_item(
                Key={"counter": self.key},
                UpdateExpression="ADD #last :one",
                ExpressionAttributeNames={"#last": "last"},
                ExpressionAttributeValues={":one": 1},
                ReturnValues="UPDATED_NEW",
            )
        except Exception:
            logger.exception("Dynamo counter update failed")
            raise
        return int(response["Attributes"]["last"])


def build_job_counter(table_name: Optional[str], file_path: str, region: str):
    if table_name:
        return DynamoJobCounter(table_name, region)
    return FileJobCounter(file_path)
