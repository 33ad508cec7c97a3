"""
Transform plugins shipped with the relay.

BUILTIN_TRANSFORMS maps short names usable in relay.yaml to callables;
anything else is resolved by import path.
"""

from transforms.examples import drop_empty, relayed, split_batch
from transforms.passthrough import transform as passthrough

BUILTIN_TRANSFORMS = {
    "passthrough": passthrough,
    "drop-empty": drop_empty,
    "split-batch": split_batch,
    "relayed": relayed,
}
