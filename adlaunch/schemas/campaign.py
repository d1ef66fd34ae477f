# adlaunch/schemas/campaign.py
"""
Upstream campaign description, as served by the campaign manager.
Field names arrive in camelCase; Python code uses snake_case.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Location(CamelModel):
    country: str = ""
    state: Optional[str] = None
    city: Optional[str] = None


class ProductCreative(CamelModel):
    id: Optional[str] = None
    channel: str = ""
    budget: Optional[float] = None
    # Entries are JSON strings like '{"url": "..."}' or plain objects
    data: List[Union[str, Dict[str, Any]]] = Field(default_factory=list)


class Product(CamelModel):
    shopify_id: str
    title: str
    price: Optional[float] = None
    description: Optional[str] = None
    category: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    image_link: Optional[str] = None
    product_link: Optional[str] = None
    creatives: List[ProductCreative] = Field(default_factory=list)


class CampaignData(CamelModel):
    """Immutable-for-this-workflow campaign input"""
    campaign_id: str
    user_id: Optional[str] = None
    business_id: Optional[str] = None
    name: Optional[str] = None
    type: str = "Campaign"
    tone: Optional[str] = None
    start_date: datetime
    end_date: datetime
    total_budget: float
    platforms: List[str] = Field(default_factory=list)
    location: List[Location] = Field(default_factory=list)
    products: List[Product] = Field(default_factory=list)

    @field_validator("platforms")
    @classmethod
    def upper_platforms(cls, value: List[str]) -> List[str]:
        return [str(p).upper() for p in value]

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe copy stored on the tracking record"""
        return self.model_dump(mode="json", by_alias=True)
