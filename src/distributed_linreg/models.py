"""Core typed models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class FitConfig(BaseModel):
    """Gradient descent parameters plus column bindings for tabular input."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_iter: int = Field(default=100, ge=0)
    step_size: float = Field(default=1e-3, gt=0)
    tol: float = Field(default=1e-8, ge=0)
    early_stop: bool = False
    num_partitions: int = Field(default=4, ge=1)
    max_workers: int | None = Field(default=None, ge=1)
    seed: int | None = None
    feature_columns: list[str] = Field(default_factory=list)
    label_column: str = "label"
    prediction_column: str = "prediction"

    @field_validator("feature_columns", mode="before")
    @classmethod
    def split_feature_columns(cls, value: object) -> object:
        """Accept a comma-separated string as well as a list."""
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @model_validator(mode="after")
    def label_not_a_feature(self) -> FitConfig:
        """Reject configs that would feed the label back in as a feature."""
        if self.label_column in self.feature_columns:
            raise ValueError(
                f"Label column '{self.label_column}' cannot also be a feature column."
            )
        return self


class ModelRecord(BaseModel):
    """The single persisted weights/bias record. Numbers only: no bools or numeric strings."""

    model_config = ConfigDict(strict=True)

    weights: list[float]
    bias: float


class ModelMetadata(BaseModel):
    """Metadata stored next to the weights record."""

    class_name: str
    uid: str
    timestamp: str
    version: str
    num_features: int = Field(ge=0)
    params: FitConfig
