"""Resolution engine: instantiation, merging and bus linking."""

from .busses import link_to_busses
from .context import ResolutionContext
from .engine import Engine
from .instantiation import instantiate, validate_result
from .merge import merge_equivalent_nodes
from .requests import InstanciatedComponent

__all__ = [
    "Engine",
    "ResolutionContext",
    "InstanciatedComponent",
    "instantiate",
    "validate_result",
    "merge_equivalent_nodes",
    "link_to_busses",
]
