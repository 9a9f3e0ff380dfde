"""Editor session supervision.

  - ProcessHandle:     one spawned process, its stream readers and exit watcher
  - SessionRegistry:   live sessions and the "current" pointer
  - CompletionBroker:  single-shot completion slots
  - SessionSupervisor: launch / stop / await / cleanup built on the three above
"""

from .broker import CompletionBroker
from .handle import ProcessHandle
from .registry import SessionRecord, SessionRegistry
from .supervisor import SessionSupervisor

__all__ = [
    "CompletionBroker",
    "ProcessHandle",
    "SessionRecord",
    "SessionRegistry",
    "SessionSupervisor",
]
