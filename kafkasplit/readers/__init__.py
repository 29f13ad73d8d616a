from kafkasplit import config
from kafkasplit.connections import new_connection_provider

from .base import RecordReader
from .partition import BoundedPartitionReader, State


def new_reader_from_conf(conf: config.Conf) -> BoundedPartitionReader:
    provider = new_connection_provider(conf.kafka, conf.reader)
    return BoundedPartitionReader(
        connection_provider=provider,
        conf=conf.reader,
    )
