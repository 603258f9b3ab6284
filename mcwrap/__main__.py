"""Run the wrapper: every argument is passed through to the server executable.

Usage:
    python -m mcwrap -Xmx2G -jar server.jar nogui

Settings come from the environment or a .env file (see mcwrap.config).
"""

import asyncio
import logging
import sys

from mcwrap import __version__
from mcwrap.config import Config
from mcwrap.process_manager.supervisor import SpawnError
from mcwrap.wrapper import Wrapper

log = logging.getLogger("mcwrap")

LOGO = r"""

  _ __ ___   _____      ___ __ __ _ _ __
 | '_ ` _ \ / __\ \ /\ / / '__/ _` | '_ \
 | | | | | | (__ \ V  V /| | | (_| | |_) |
 |_| |_| |_|\___| \_/\_/ |_|  \__,_| .__/
                                   |_|
"""


LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s %(message)s"


def main() -> None:
    try:
        config = Config.from_env()
    except ValueError as exc:
        logging.basicConfig(format=LOG_FORMAT)
        log.critical("Invalid configuration: %s", exc)
        sys.exit(2)

    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)
    for line in LOGO.strip("\n").splitlines():
        log.info("%s", line)
    log.info("mcwrap v%s", __version__)

    wrapper = Wrapper(config)
    try:
        outcome = asyncio.run(wrapper.run(sys.argv[1:]))
    except SpawnError as exc:
        log.critical("%s", exc)
        sys.exit(2)

    sys.exit(0 if outcome.graceful else 1)


if __name__ == "__main__":
    main()
