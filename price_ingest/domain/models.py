"""
Domain models for the price ingestion pipeline.

A Record is one `InsuranceService` together with its nested negotiated rates
and prices, exactly as it appears on one line (or one array element) of an
input file. Records are immutable and ignore keys they do not know about.

The closed enumerations for `negotiated_type` and `billing_class` are
enforced by the store's CHECK constraints, so an unexpected value fails the
insert for that Record rather than the decode of the whole line.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, List

from pydantic import BaseModel, Field, field_validator

NEGOTIATED_TYPES = ("percentage", "negotiated")
BILLING_CLASSES = ("professional", "institutional")

_MODEL_CONFIG = {
    "frozen": True,
    "populate_by_name": True,
    "extra": "ignore",
}


def _null_as_empty_list(value: Any) -> Any:
    """JSON `null` for an array field means an empty array."""
    return [] if value is None else value


class NegotiatedPrice(BaseModel):
    """
    A concrete price point; persisted as one `negotiated_rates` row.
    """

    negotiated_type: str = Field(..., description="One of NEGOTIATED_TYPES.")
    negotiated_rate: Decimal = Field(..., description="Negotiated currency amount.")
    expiration_date: date = Field(..., description="Date the price expires.")
    service_codes: List[str] = Field(
        default_factory=list,
        alias="service_code",
        description="Place-of-service codes, stored as a JSON array.",
    )
    billing_class: str = Field(..., description="One of BILLING_CLASSES.")

    model_config = _MODEL_CONFIG

    @field_validator("service_codes", mode="before")
    @classmethod
    def _null_service_codes(cls, value: Any) -> Any:
        return _null_as_empty_list(value)


class NegotiatedRate(BaseModel):
    """
    A group of prices shared by a set of provider references.
    """

    provider_references: List[int] = Field(default_factory=list)
    negotiated_prices: List[NegotiatedPrice] = Field(default_factory=list)

    model_config = _MODEL_CONFIG

    @field_validator("provider_references", "negotiated_prices", mode="before")
    @classmethod
    def _null_lists(cls, value: Any) -> Any:
        return _null_as_empty_list(value)


class InsuranceService(BaseModel):
    """
    Representation of a single row in the `insurance_services` table plus its rates.
    """

    negotiation_arrangement: str = Field(..., description="e.g. 'ffs', 'bundle'.")
    name: str = Field(..., description="Human-readable service name.")
    billing_code_type: str = Field(..., description="e.g. 'CPT', 'HCPCS'.")
    billing_code_type_version: str = Field(...)
    billing_code: str = Field(...)
    description: str = Field("", description="Optional free text.")
    negotiated_rates: List[NegotiatedRate] = Field(default_factory=list)

    model_config = _MODEL_CONFIG

    @field_validator("negotiated_rates", mode="before")
    @classmethod
    def _null_rates(cls, value: Any) -> Any:
        return _null_as_empty_list(value)

    @field_validator("description", mode="before")
    @classmethod
    def _null_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def price_count(self) -> int:
        return sum(len(rate.negotiated_prices) for rate in self.negotiated_rates)


__all__ = [
    "BILLING_CLASSES",
    "NEGOTIATED_TYPES",
    "InsuranceService",
    "NegotiatedPrice",
    "NegotiatedRate",
]
