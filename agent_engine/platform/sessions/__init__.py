"""Session storage module.

This module provides conversation persistence used by the runner:
- Session protocol
- In-memory sessions
- SQL sessions on an async SQLAlchemy engine
"""

from agent_engine.platform.sessions.memory import MemorySession
from agent_engine.platform.sessions.protocol import Session
from agent_engine.platform.sessions.sql import SqlSession, SqlSessionStore

__all__ = [
    "MemorySession",
    "Session",
    "SqlSession",
    "SqlSessionStore",
]
