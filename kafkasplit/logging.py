import logging

from kafkasplit import settings


def init():
    logging.getLogger('testcontainers').setLevel(logging.WARN)
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.StreamHandler()
        ]
    )
