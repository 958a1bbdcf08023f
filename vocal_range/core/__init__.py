"""Core components for the Vocal Range application."""

# Import interfaces for easier access
from .interfaces import (
    IAudioProvider,
    IRangeAdvisor,
)

__all__ = ["IAudioProvider", "IRangeAdvisor"]
