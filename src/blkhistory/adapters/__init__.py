"""Adapters for external collaborators.

- event_source: journalctl, JSON-lines file and stdin record suppliers
- time_parser: date(1)-backed window boundary parsing
- enumeration: lsblk hand-off
- git_history: git-backed versioned history
"""
