"""API route handlers."""
from . import awards, contexts, depletion, inventory, marketplace

__all__ = ["awards", "contexts", "depletion", "inventory", "marketplace"]
