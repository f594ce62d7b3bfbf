"""Run the expired-session sweeper as a standalone process."""

import logging
import time

from internship_auth.services.session_sweeper import session_sweeper


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    session_sweeper.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        session_sweeper.stop()


if __name__ == "__main__":
    main()
