"""Chat history store (aiosqlite).

  _connection: schema, init, shutdown
  turns: append / window / clear per conversation
"""

from wabot.history._connection import _init_test_database, close_database, init_database
from wabot.history.turns import append_turn, clear_history, get_recent_turns

__all__ = [
    "_init_test_database",
    "append_turn",
    "clear_history",
    "close_database",
    "get_recent_turns",
    "init_database",
]
