# hubrelay/config/loader.py
"""
loader.py — Load relay.yaml into resolved routing records.

Everything that can be checked before connecting is checked here: schema,
"server/node" syntax, references to unknown servers, endpoint schemes and
transform imports. Any failure raises a ConfigError and the relay does not
start.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from hubrelay.clients import client_class_for
from hubrelay.config.models import BindingModel, NodeSpecModel, RelayFileModel
from hubrelay.errors import ConfigError, TransformLoadError
from hubrelay.routing import TRANSFORM, Binding, Input, NodeSpec, parse_node_spec

logger = logging.getLogger("hubrelay.config")


@dataclass
class RelaySettings:
    reconnect_delay: float = 3.0
    max_concurrent_dispatches: int = 50


@dataclass
class RelayConfig:
    connections: Dict[str, str]
    bindings: Dict[str, Binding] = field(default_factory=dict)
    settings: RelaySettings = field(default_factory=RelaySettings)


class ConfigLoader:
    @classmethod
    def load(
        cls,
        path: str | Path,
        transforms: Optional[Mapping[str, TRANSFORM]] = None,
    ) -> RelayConfig:
        path = Path(path)
        try:
            with open(path) as f:
                raw = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e
        return cls.parse(raw, transforms)

    @classmethod
    def parse(
        cls,
        raw: Any,
        transforms: Optional[Mapping[str, TRANSFORM]] = None,
    ) -> RelayConfig:
        if not isinstance(raw, dict):
            raise ConfigError("invalid configuration: expected a mapping at top level")
        try:
            model = RelayFileModel.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"invalid configuration: {e}") from e

        for name, url in model.connections.items():
            try:
                client_class_for(url)
            except ConfigError as e:
                raise ConfigError(f"connection '{name}': {e}") from e

        config = RelayConfig(
            connections=dict(model.connections),
            settings=RelaySettings(
                reconnect_delay=model.relay.reconnect_delay,
                max_concurrent_dispatches=model.relay.max_concurrent_dispatches,
            ),
        )

        for binding_id, bm in model.bindings.items():
            binding = cls._parse_binding(binding_id, bm, transforms or {})
            cls._check_servers(binding, config.connections)
            config.bindings[binding_id] = binding

        return config

    @classmethod
    def _parse_binding(
        cls,
        binding_id: str,
        bm: BindingModel,
        transforms: Mapping[str, TRANSFORM],
    ) -> Binding:
        inputs = []
        for entry in bm.input:
            if isinstance(entry, str):
                inputs.append(Input(node=parse_node_spec(entry)))
            else:
                inputs.append(Input(node=cls._node_ref(entry.node), pattern=entry.pattern))

        outputs = tuple(cls._node_ref(o) for o in bm.output)

        transform = None
        if bm.transform:
            transform = resolve_transform(bm.transform, transforms)

        return Binding(
            id=binding_id,
            input=tuple(inputs),
            output=outputs,
            transform=transform,
            transform_ref=bm.transform,
        )

    @staticmethod
    def _node_ref(ref: str | NodeSpecModel) -> NodeSpec:
        if isinstance(ref, NodeSpecModel):
            return NodeSpec(server=ref.server, node=ref.node)
        return parse_node_spec(ref)

    @staticmethod
    def _check_servers(binding: Binding, connections: Mapping[str, str]) -> None:
        referenced = [i.node for i in binding.input] + list(binding.output)
        for spec in referenced:
            if spec.server not in connections:
                raise ConfigError(
                    f"binding '{binding.id}': unknown server '{spec.server}' in '{spec}'"
                )


# ============================================================================
# Transform resolution
# ============================================================================

def resolve_transform(reference: str, transforms: Mapping[str, TRANSFORM]) -> TRANSFORM:
    """
    Resolve a transform reference to a callable.

    Lookup order:
      1. registered name in `transforms`
      2. "module:attr" or "module.attr"
      3. "module" exposing a module-level `transform` callable
    """
    if reference in transforms:
        fn = transforms[reference]
    else:
        fn = _import_transform(reference)

    if not callable(fn):
        raise TransformLoadError(reference, "transform must be a callable")
    logger.debug(f"Resolved transform '{reference}' -> {fn!r}")
    return fn


def _import_transform(reference: str) -> Any:
    if ":" in reference:
        mod, _, attr = reference.partition(":")
        try:
            obj = getattr(importlib.import_module(mod), attr)
        except (ImportError, AttributeError) as e:
            raise TransformLoadError(reference, e) from e
        return _module_default(reference, obj)

    mod, _, attr = reference.rpartition(".")
    if mod:
        try:
            obj = getattr(importlib.import_module(mod), attr)
        except (ImportError, AttributeError):
            pass
        else:
            return _module_default(reference, obj)

    try:
        module = importlib.import_module(reference)
    except ImportError as e:
        raise TransformLoadError(reference, e) from e
    return _module_default(reference, module)


def _module_default(reference: str, obj: Any) -> Any:
    """A module stands for its module-level `transform` function."""
    if not isinstance(obj, ModuleType):
        return obj
    try:
        return obj.transform
    except AttributeError:
        raise TransformLoadError(
            reference, "module does not define a 'transform' function"
        ) from None
