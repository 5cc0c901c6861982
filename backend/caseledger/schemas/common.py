from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from caseledger.services.ledger import amount_to_json, validate_amount


class ApiModel(BaseModel):
    # Documents and the HTTP API use camelCase (billNumber); Python code uses snake_case.
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


# Persisted money: Decimal to the cent, written out as a plain JSON number.
Amount = Annotated[
    Decimal,
    AfterValidator(validate_amount),
    PlainSerializer(amount_to_json, return_type=Any, when_used="json"),
]
