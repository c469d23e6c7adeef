"""
Base pydantic model for API payloads.

Python attributes are snake_case; JSON on the wire is camelCase. Both are
accepted on input so services can build models by field name.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,  # Allow field population by python name
        from_attributes=True,
    )


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
