"""
Telegram Mini App task/notes backend.

Shared code for the ``load_api`` and ``save_api`` Lambda handlers: initData
parsing, the Supabase gateway, the load/replace store operations and the
HTTP response helpers.
"""

__version__ = "0.3.0"
