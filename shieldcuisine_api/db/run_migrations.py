"""
Run the bundled Alembic migrations without an alembic.ini.

    python -m shieldcuisine_api.db.run_migrations upgrade head
    python -m shieldcuisine_api.db.run_migrations downgrade -1
    python -m shieldcuisine_api.db.run_migrations current
"""

import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from alembic import command
from alembic.config import Config

from shieldcuisine_api.db.config import get_settings

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

# command name -> (alembic function, default arguments)
COMMANDS: Dict[str, Tuple[Callable[..., None], List[str]]] = {
    "upgrade": (command.upgrade, ["head"]),
    "downgrade": (command.downgrade, ["-1"]),
    "history": (command.history, []),
    "current": (command.current, []),
    "heads": (command.heads, []),
    "show": (command.show, ["head"]),
}


def build_config() -> Config:
    """Alembic Config pointing at the package's migrations directory."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # Offline mode only; env.py connects with the async URL
    cfg.set_main_option("sqlalchemy.url", get_settings().sync_database_url.replace("%", "%%"))
    return cfg


# PUBLIC_INTERFACE
def main(argv: Optional[List[str]] = None) -> None:
    """Dispatch an Alembic command, e.g. main(["upgrade", "head"])."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args or args[0] not in COMMANDS:
        sys.exit(f"Usage: run_migrations {{{'|'.join(COMMANDS)}}} [args]")
    func, defaults = COMMANDS[args[0]]
    func(build_config(), *(args[1:] or defaults))


if __name__ == "__main__":
    main()
