"""blkhistory: historical block device topology reconstruction.

Rebuilds the /dev and /sys block hierarchy of a machine as it was during a
past time window, from the device events a monitor recorded into the
journal, and either hands the tree to lsblk or exports it as a git history
with one commit per event.
"""

__version__ = "0.1.0"
