"""
Module: mailparts.__init__

What:
  Aggregate package exports for the mailparts MIME decode/encode library and
  expose the primary namespace segments (configuration, core codecs, mail-store
  transports, and utilities).

Why:
  Importers rely on these names to decode messages, compose new ones and plug
  in transports without touching private modules.

How:
  Provide an explicit ``__all__`` declaration enumerating the public
  subpackages plus the package version.

Interfaces:
  - config: Runtime configuration and compose document schemas.
  - core: Charset, transfer, date, walker, composer and mailbox modules.
  - imap: Transport protocol plus IMAP and in-memory transports.
  - utils: Logging and MIME parsing helpers.
  - errors: Typed exception hierarchy.
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "core",
    "errors",
    "imap",
    "utils",
    "__version__",
]
