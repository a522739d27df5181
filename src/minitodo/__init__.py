"""
MiniTodo: a personal task list backend.

The task engine (`minitodo.engine`) keeps the ordered task list and its
counters in sync with the task store; `minitodo.main` exposes it over HTTP.
"""

__version__ = "0.1.0"
