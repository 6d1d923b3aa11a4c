"""
pavlovia.org API Layer.

This package handles all communication with the hosting service.
"""

from .transport import AiohttpTransport, Delivery, Transport

__all__ = ["AiohttpTransport", "Delivery", "Transport"]
