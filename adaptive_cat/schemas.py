"""
Pydantic schemas for item pool records supplied by the host.

Records may use snake_case or the host's camelCase keys. Missing IRT
parameters take their defaults here, once, so the estimator always sees a
fully specified ``IRTParameters``.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from adaptive_cat.models import IRTParameters, Item


class IRTParametersSchema(BaseModel):
    """Calibrated IRT parameters for one item."""

    model_config = ConfigDict(
        extra="forbid", populate_by_name=True, alias_generator=to_camel
    )

    difficulty: float = Field(
        default=0.0, ge=-10.0, le=10.0, description="Location parameter b"
    )
    discrimination: float = Field(
        default=1.0, gt=0.0, le=10.0, description="Slope parameter a"
    )
    guessing: float = Field(
        default=0.0, ge=0.0, lt=1.0, description="Lower asymptote c (3PL)"
    )
    slipping: float = Field(
        default=0.0, ge=0.0, lt=1.0, description="Slipping parameter (unused by scoring)"
    )

    def to_parameters(self) -> IRTParameters:
        return IRTParameters(
            difficulty=self.difficulty,
            discrimination=self.discrimination,
            guessing=self.guessing,
            slipping=self.slipping,
        )


class ItemSchema(BaseModel):
    """One item pool record."""

    model_config = ConfigDict(
        extra="ignore", populate_by_name=True, alias_generator=to_camel
    )

    id: Union[int, str] = Field(..., description="Item id, unique within the pool")
    irt_parameters: IRTParametersSchema = Field(default_factory=IRTParametersSchema)
    content_category: Optional[str] = Field(
        default=None, description="Content tag used by content balancing"
    )

    def to_item(self) -> Item:
        return Item(
            id=self.id,
            irt_parameters=self.irt_parameters.to_parameters(),
            content_category=self.content_category,
        )
