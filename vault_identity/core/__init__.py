"""Shared primitives."""

from vault_identity.core.events import EventEmitter, Subscription

__all__ = ["EventEmitter", "Subscription"]
