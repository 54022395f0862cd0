import logging
import asyncio
import sys

from mysql_conduit import Connection, ConnectionSettings

logger = logging.getLogger(__name__)


async def main():
    logging.basicConfig(level=logging.DEBUG)
    conn_str = sys.argv[1] if len(sys.argv) > 1 else "server=127.0.0.1;user=user"
    conn = await Connection.open(ConnectionSettings.parse(conn_str))
    try:
        await conn.ping()
        logger.info("Server version: %s", conn.server_version)
    finally:
        await conn.close()


if __name__ == "__main__":
    asyncio.run(main())
