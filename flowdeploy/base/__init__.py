"""
FlowDeploy CLI Base Command Classes

Abstract base classes for consistent command structure.
"""

from .base_command import BaseCommand
from .client_command import ClientCommand

__all__ = [
    "BaseCommand",
    "ClientCommand",
]
