"""db-oracle CLI package.

    from db_oracle.cli import main
"""

from db_oracle.cli.main import main

__all__ = ["main"]
