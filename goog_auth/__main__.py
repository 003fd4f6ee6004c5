"""Entry point for goog-auth.

Usage:
    python -m goog_auth login <account> [scope ...]
    python -m goog_auth logout <account>
    python -m goog_auth status <account>
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

USAGE = (
    "usage: goog-auth login <account> [scope ...]\n"
    "       goog-auth logout <account>\n"
    "       goog-auth status <account>"
)


def configure_logging() -> None:
    """Configure logging to stderr.

    Command output goes to stdout, so logs stay out of the way of scripts
    that parse it.

    Respects LOG_LEVEL env var (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = logging.getLevelNamesMapping().get(log_level_str, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    # Reduce noise from Google libraries
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)
    logging.getLogger("google.auth").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def main(argv: list[str] | None = None) -> None:
    """Main entry point.

    Loads environment, opens the secure store and dispatches the command.
    Exits with status 1 on failure and 2 on a usage error.
    """
    # Load .env file if present
    load_dotenv()

    configure_logging()
    logger = logging.getLogger(__name__)

    # Import after logging is configured so module loggers inherit it
    from goog_auth.accounts import AccountService
    from goog_auth.config import default_config_dir
    from goog_auth.storage import open_store
    from goog_auth.utils.errors import GoogAuthError

    args = sys.argv[1:] if argv is None else argv

    try:
        match args:
            case ["login", account, *scopes]:
                service = AccountService(open_store(default_config_dir()))
                result = service.login(account, scopes or None)
                print(f"Logged in {result.account} as {result.email}")
            case ["logout", account]:
                service = AccountService(open_store(default_config_dir()))
                if service.logout(account):
                    print(f"Logged out {account}")
                else:
                    print(f"No stored credentials for {account}")
            case ["status", account]:
                service = AccountService(open_store(default_config_dir()))
                info = service.status(account)
                print(info.model_dump_json(indent=2))
            case _:
                print(USAGE, file=sys.stderr)
                sys.exit(2)
    except GoogAuthError as e:
        logger.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
