"""grpccli/report/json_report.py"""
from __future__ import annotations
import json

from grpccli.dynamic import DynamicMessage


def build(payload: DynamicMessage | dict) -> str:
    if isinstance(payload, DynamicMessage):
        return payload.encode_to(indent=2)
    return json.dumps(payload, indent=2, default=str)
