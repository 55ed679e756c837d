"""
Provides the same behaviour as invoking ``epubshelf.cli`` but is more
convenient for end-users.
"""
from __future__ import annotations

from .cli import cli

if __name__ == "__main__":
    cli(prog_name="epubshelf")
