"""Optimistic mutation coordination."""

from notesync.mutations.coordinator import MutationContext, MutationCoordinator

__all__ = ["MutationContext", "MutationCoordinator"]
