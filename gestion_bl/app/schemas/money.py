from decimal import Decimal
from typing import Annotated

from pydantic import PlainSerializer

from gestion_bl.services.formatting import format_amount

# Montants exposés en JSON avec exactement 3 décimales ("50.000")
Millimes = Annotated[
    Decimal,
    PlainSerializer(lambda v: format_amount(v), return_type=str, when_used="json"),
]
