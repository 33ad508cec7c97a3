"""
routing — Static routing data for the relay.

Key pieces:
    NodeSpec             (server, node) pair
    Input                subscription request: node + optional pattern
    Binding              named rule: inputs → outputs, optional transform
    parse_node_spec      "server/node" → NodeSpec
    build_binding_table  per-server subset of the global bindings
"""

from hubrelay.routing.node_spec import (
    TRANSFORM,
    Binding,
    Input,
    NodeSpec,
    parse_node_spec,
)
from hubrelay.routing.binding_table import build_binding_table

__all__ = [
    "TRANSFORM",
    "Binding",
    "Input",
    "NodeSpec",
    "parse_node_spec",
    "build_binding_table",
]
