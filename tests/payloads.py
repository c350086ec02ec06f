"""Record payloads shared by the unit and integration tests."""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, Iterable, List

OFFICE_VISIT: Dict[str, Any] = {
    "negotiation_arrangement": "ffs",
    "name": "Office Visit",
    "billing_code_type": "CPT",
    "billing_code_type_version": "2024",
    "billing_code": "99213",
    "description": "",
    "negotiated_rates": [
        {
            "provider_references": [101, 102],
            "negotiated_prices": [
                {
                    "negotiated_type": "negotiated",
                    "negotiated_rate": 125.50,
                    "expiration_date": "2025-12-31",
                    "service_code": ["11", "22"],
                    "billing_class": "professional",
                }
            ],
        }
    ],
}


def service_payload(name: str = "Office Visit", **overrides: Any) -> Dict[str, Any]:
    payload = copy.deepcopy(OFFICE_VISIT)
    payload["name"] = name
    payload.update(overrides)
    return payload


def price_payload(**overrides: Any) -> Dict[str, Any]:
    price = copy.deepcopy(OFFICE_VISIT["negotiated_rates"][0]["negotiated_prices"][0])
    price.update(overrides)
    return price


def as_lines(payloads: Iterable[Any]) -> List[str]:
    return [json.dumps(payload) for payload in payloads]
