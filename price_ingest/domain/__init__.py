"""
Domain package for the price ingestion pipeline.

Exports the Record shapes transferred from the stream producer to the
persistence workers. Keep this package focused on data definitions.
"""

from price_ingest.domain.models import (
    BILLING_CLASSES,
    NEGOTIATED_TYPES,
    InsuranceService,
    NegotiatedPrice,
    NegotiatedRate,
)

__all__ = [
    "BILLING_CLASSES",
    "NEGOTIATED_TYPES",
    "InsuranceService",
    "NegotiatedPrice",
    "NegotiatedRate",
]
