from __future__ import annotations

import json
from typing import Any, Dict

import jsonschema

from carelog.errors import InvalidScan

# Payload printed on bed QR labels.
BED_QR_SCHEMA: Dict[str, Any] = {
  "type":"object",
  "required":["type","qr_code_id"],
  "properties":{
    "type":{"const":"bed"},
    "qr_code_id":{"type":"string","pattern":"\\S"}
  }
}

def validate_bed_payload(payload: Any) -> None:
    try:
        jsonschema.validate(instance=payload, schema=BED_QR_SCHEMA)
    except jsonschema.ValidationError as e:
        raise InvalidScan(f"not a bed QR code: {e.message}") from e

def parse_bed_qr(raw: str) -> str:
    """Decode scanned QR text and return the bed's ``qr_code_id``."""
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise InvalidScan("QR code is not valid JSON") from e
    validate_bed_payload(payload)
    return payload["qr_code_id"].strip()

def build_bed_qr(qr_code_id: str) -> str:
    payload = {"type": "bed", "qr_code_id": qr_code_id}
    validate_bed_payload(payload)
    return json.dumps(payload, separators=(",", ":"))
