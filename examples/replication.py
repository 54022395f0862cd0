import logging
import asyncio

from mysql_conduit import ReplicationManager, Session

CONFIG = {
    "groups": [
        {
            "name": "cluster",
            "policy": "round_robin",
            "retry_time": 10,
            "servers": [
                {
                    "name": "primary",
                    "is_master": True,
                    "connection_string": "server=127.0.0.1;port=3306;user=user",
                },
                {
                    "name": "replica",
                    "connection_string": "server=127.0.0.1;port=3307;user=user",
                },
            ],
        }
    ]
}

logger = logging.getLogger(__name__)


async def main():
    logging.basicConfig(level=logging.INFO)
    manager = ReplicationManager.from_config(CONFIG)
    try:
        for master in (True, False, False):
            session = Session("server=cluster", manager)
            driver = await session.open(master=master)
            settings = driver.settings
            logger.info("master=%s -> %s:%s", master, settings.server, settings.port)
            await session.close()
    finally:
        await manager.close()


if __name__ == "__main__":
    asyncio.run(main())
