"""cortex - a tree-shaped knowledge and task manager.

Folders, notes, todos and timed sessions live in one node forest that is
searched, cross-linked with [[wiki links]] and persisted as a whole.
"""

__version__ = "0.1.0"
