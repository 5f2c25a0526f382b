"""Collaborator contracts shared by the reconstructor and the adapters."""
