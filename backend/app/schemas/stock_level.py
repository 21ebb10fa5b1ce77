from pydantic import BaseModel, ConfigDict, Field


class StockSummaryBatch(BaseModel):
    product_ids: list[str] = Field(alias="productIds", min_length=1, max_length=100)
    include: list[str] | None = None  # ex: locationSummaries, sublocationSummaries

    model_config = ConfigDict(populate_by_name=True)
