"""Mobile ad hoc network collaborators: mobility, radio range, protocol models, traffic."""

from manetexp.net.protocols import RoutingModel, available_protocols, load_protocol, register_protocol

__all__ = [
    "RoutingModel",
    "available_protocols",
    "load_protocol",
    "register_protocol",
]
