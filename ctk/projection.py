"""
Key projection: restrict records to a chosen list of fields.
"""
from collections.abc import Mapping
from typing import Any, Dict, List, Sequence


def project(records: Sequence[Mapping], keys: Sequence[str]) -> List[Dict[str, Any]]:
    """
    Restrict each record to `keys`, in the order given.

    Values are shared with the source record, not copied. Keys a record does
    not have are skipped for that record.
    """
    return [
        {key: record[key] for key in keys if key in record}
        for record in records
    ]
