"""
ExploreValley API - Request schema base
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Accepts camelCase (web/mobile clients) or snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
