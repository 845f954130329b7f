"""
ocli - Odoo database and server operations CLI.

Wraps odoo-bin and the PostgreSQL cluster behind it to create, copy,
rename, drop, back up, restore and list databases, start the server,
and keep addon paths in sync.
"""

__version__ = "0.3.0"
