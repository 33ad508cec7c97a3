# hubrelay/routing/binding_table.py
"""
binding_table.py — Per-server view of the global binding set.

A binding is attached to a server's table iff at least one of its inputs
subscribes on that server. The attached copy only keeps the inputs for that
server; output list and transform are shared unchanged.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Mapping

from hubrelay.routing.node_spec import Binding


def build_binding_table(server: str, bindings: Mapping[str, Binding]) -> Dict[str, Binding]:
    table: Dict[str, Binding] = {}
    for binding_id, binding in bindings.items():
        if server not in binding.servers:
            continue
        inputs = tuple(i for i in binding.input if i.node.server == server)
        if len(inputs) == len(binding.input):
            table[binding_id] = binding
        else:
            table[binding_id] = replace(binding, input=inputs)
    return table
