"""ocli command modules."""

from ocli.commands import addons, db, server

__all__ = ["addons", "db", "server"]
