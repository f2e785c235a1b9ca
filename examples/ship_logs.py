"""Example application shipping its logs to an archive.

Start an archive first, e.g.:
    SHIPLOG_ARCHIVE_STORAGE_BACKEND=memory shiplog-archive

Then run:
    python examples/ship_logs.py

Every record is written to stderr as JSON and, every flush interval, the
buffered lines are submitted to the archive. Stopping the archive changes
nothing for this program; records written meanwhile are simply not archived.
"""

import logging
import socket
import sys
import time

from shiplog import ArchiveHandler, ShipperSettings, archive_writer

settings = ShipperSettings(flush_interval=1.0)
writer = archive_writer("service", socket.gethostname(), sys.stderr.buffer, settings)

logger = logging.getLogger("example")
logger.setLevel(logging.INFO)
logger.addHandler(ArchiveHandler(writer))


def main() -> None:
    try:
        for i in range(10):
            logger.info("processed job", extra={"job": i})
            time.sleep(0.5)
    finally:
        # Ships anything still buffered
        logging.shutdown()


if __name__ == "__main__":
    main()
