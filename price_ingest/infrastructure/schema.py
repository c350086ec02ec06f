"""
SQL for the two-table pricing schema.

The DDL is idempotent (`IF NOT EXISTS`) and is run before every ingestion; it
is not a migration system. Array fields are `JSON` (not `JSONB`) so the
serialized text written by the workers is stored byte-for-byte.
"""

from __future__ import annotations

from typing import Tuple

from price_ingest.domain.models import BILLING_CLASSES, NEGOTIATED_TYPES

SERVICES_TABLE = "insurance_services"
RATES_TABLE = "negotiated_rates"


def _in_list(values: Tuple[str, ...]) -> str:
    return ", ".join(f"'{value}'" for value in values)


CREATE_SERVICES_TABLE = f"""
CREATE TABLE IF NOT EXISTS {SERVICES_TABLE} (
    id SERIAL PRIMARY KEY,
    negotiation_arrangement VARCHAR(50) NOT NULL,
    name VARCHAR(500) NOT NULL,
    billing_code_type VARCHAR(20) NOT NULL,
    billing_code_type_version VARCHAR(20) NOT NULL,
    billing_code VARCHAR(50) NOT NULL,
    description TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS idx_services_billing_code ON {SERVICES_TABLE} (billing_code);
CREATE INDEX IF NOT EXISTS idx_services_name ON {SERVICES_TABLE} (name);
CREATE INDEX IF NOT EXISTS idx_services_negotiation_arrangement
    ON {SERVICES_TABLE} (negotiation_arrangement);
"""

CREATE_RATES_TABLE = f"""
CREATE TABLE IF NOT EXISTS {RATES_TABLE} (
    id SERIAL PRIMARY KEY,
    service_id INTEGER NOT NULL REFERENCES {SERVICES_TABLE} (id) ON DELETE CASCADE,
    provider_references JSON NOT NULL,
    negotiated_type VARCHAR(20) NOT NULL
        CHECK (negotiated_type IN ({_in_list(NEGOTIATED_TYPES)})),
    negotiated_rate NUMERIC(15, 2) NOT NULL,
    expiration_date DATE NOT NULL,
    service_codes JSON NOT NULL,
    billing_class VARCHAR(20) NOT NULL
        CHECK (billing_class IN ({_in_list(BILLING_CLASSES)})),
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS idx_rates_service_id ON {RATES_TABLE} (service_id);
CREATE INDEX IF NOT EXISTS idx_rates_negotiated_type ON {RATES_TABLE} (negotiated_type);
CREATE INDEX IF NOT EXISTS idx_rates_billing_class ON {RATES_TABLE} (billing_class);
CREATE INDEX IF NOT EXISTS idx_rates_expiration_date ON {RATES_TABLE} (expiration_date);
"""

INSERT_SERVICE = f"""
INSERT INTO {SERVICES_TABLE}
    (negotiation_arrangement, name, billing_code_type, billing_code_type_version,
     billing_code, description)
VALUES (%s, %s, %s, %s, %s, %s)
RETURNING id
"""

INSERT_RATE = f"""
INSERT INTO {RATES_TABLE}
    (service_id, provider_references, negotiated_type, negotiated_rate,
     expiration_date, service_codes, billing_class)
VALUES (%s, %s::json, %s, %s, %s, %s::json, %s)
"""

COUNT_SERVICES = f"SELECT COUNT(*) FROM {SERVICES_TABLE};"
COUNT_RATES = f"SELECT COUNT(*) FROM {RATES_TABLE};"

__all__ = [
    "COUNT_RATES",
    "COUNT_SERVICES",
    "CREATE_RATES_TABLE",
    "CREATE_SERVICES_TABLE",
    "INSERT_RATE",
    "INSERT_SERVICE",
    "RATES_TABLE",
    "SERVICES_TABLE",
]
