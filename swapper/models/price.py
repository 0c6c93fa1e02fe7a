"""PriceData model."""

from datetime import datetime
from pydantic import BaseModel, Field


class PriceData(BaseModel):
    """A USD price observation for one symbol."""

    symbol: str = Field(..., min_length=1, description="Asset ticker")
    price: float = Field(..., gt=0, description="Price in USD")
    as_of: datetime = Field(..., description="When the price was observed")
    source: str = Field(..., description="Where the price came from")

    model_config = {"frozen": True}
