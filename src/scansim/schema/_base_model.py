from typing import ClassVar

from pydantic import BaseModel, ConfigDict


class ScanBaseModel(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(
        validate_assignment=True,
        validate_default=True,
        populate_by_name=True,
        extra="forbid",
    )
