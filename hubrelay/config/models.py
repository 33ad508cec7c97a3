# hubrelay/config/models.py
"""Raw (on-disk) shape of relay.yaml, validated with pydantic."""

from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NodeSpecModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    server: str
    node: str


NodeRef = Union[str, NodeSpecModel]


class InputModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    node: NodeRef
    pattern: Optional[str] = None


class BindingModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    input: List[Union[str, InputModel]] = Field(min_length=1)
    output: List[NodeRef] = Field(min_length=1)
    transform: Optional[str] = None

    @field_validator("input", "output", mode="before")
    @classmethod
    def _ensure_list(cls, value):
        if isinstance(value, (str, dict)):
            return [value]
        return value


class SettingsModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reconnect_delay: float = Field(default=3.0, gt=0)
    max_concurrent_dispatches: int = Field(default=50, gt=0)


class RelayFileModel(BaseModel):
    relay: SettingsModel = Field(default_factory=SettingsModel)
    connections: Dict[str, str] = Field(min_length=1)
    bindings: Dict[str, BindingModel]
