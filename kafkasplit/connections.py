import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from confluent_kafka import Consumer, KafkaError, KafkaException, TopicPartition

from kafkasplit import config
from kafkasplit.errors import ConfigurationError, FetchError
from kafkasplit.ranges import PartitionRange


logger = logging.getLogger(__name__)


class Record:
    def __init__(self, key, value, offset: int, topic: str | None = None, partition: int | None = None):
        self._key = key
        self._value = value
        self._topic = topic
        self._partition = partition
        self._offset = offset

    def key(self):
        return self._key

    def value(self):
        return self._value

    def topic(self) -> str | None:
        return self._topic

    def partition(self) -> int | None:
        return self._partition

    def offset(self) -> int:
        return self._offset

    def __repr__(self):
        return 'Record(topic={!r}, partition={!r}, offset={!r}, key={!r})'.format(
            self._topic,
            self._partition,
            self._offset,
            self._key,
        )


class Connection(ABC):
    """
    A positioned connection to a single topic partition.

    pull() may legitimately return None or an empty list while the
    partition still has data; callers decide what an empty pull means.
    """
    @abstractmethod
    def seek(self, topic: str, partition: int, offset: int):
        pass

    @abstractmethod
    def pull(self, timeout: float) -> Optional[List[Record]]:
        pass

    @abstractmethod
    def close(self):
        pass


ConnectionProvider = Callable[[PartitionRange], Connection]


class KafkaConnection(Connection):
    def __init__(self, consumer, max_batch_size=500):
        self._consumer = consumer
        self._max_batch_size = max_batch_size

    def seek(self, topic, partition, offset):
        # assign() positions the consumer without joining the group
        self._consumer.assign([TopicPartition(topic, partition, offset)])

    def pull(self, timeout):
        msgs = self._consumer.consume(
            num_messages=self._max_batch_size,
            timeout=timeout,
        )
        if not msgs:
            return msgs

        records = []
        for msg in msgs:
            err = msg.error()
            if err is None:
                records.append(Record(
                    key=msg.key(),
                    value=msg.value(),
                    topic=msg.topic(),
                    partition=msg.partition(),
                    offset=msg.offset(),
                ))
            elif err.code() == KafkaError._PARTITION_EOF:
                logger.debug(
                    '{} [{}] reached end at offset {}'.format(
                        msg.topic(),
                        msg.partition(),
                        msg.offset(),
                    )
                )
            else:
                # unknown error raise to caller
                raise FetchError(err)
        return records

    def close(self):
        return self._consumer.close()


def new_consumer_conf(conf: config.Kafka) -> dict:
    kconf = {
        'bootstrap.servers': ','.join(conf.brokers),
        'group.id': conf.group_id,
        'enable.auto.commit': False,
        'enable.auto.offset.store': False,
        'auto.offset.reset': 'error',
    }

    if conf.security_protocol:
        kconf['security.protocol'] = conf.security_protocol

    if conf.sasl:
        kconf['sasl.mechanism'] = conf.sasl.mechanism
        kconf['sasl.username'] = conf.sasl.username
        kconf['sasl.password'] = conf.sasl.password

    if conf.ssl:
        kconf['ssl.ca.location'] = conf.ssl.ca_location
        kconf['ssl.certificate.location'] = conf.ssl.certificate_location
        kconf['ssl.key.location'] = conf.ssl.key_location
        if conf.ssl.key_password:
            kconf['ssl.key.password'] = conf.ssl.key_password
        if conf.ssl.endpoint_identification_algorithm:
            kconf['ssl.endpoint.identification.algorithm'] = conf.ssl.endpoint_identification_algorithm

    return kconf


def new_connection_provider(kafka_conf: config.Kafka, reader_conf: config.Reader) -> ConnectionProvider:
    """
    Returns a provider that opens a fresh Kafka consumer per partition range.
    Connections are never shared between ranges.
    """
    kconf = new_consumer_conf(kafka_conf)

    def provider(split: PartitionRange) -> Connection:
        try:
            consumer = Consumer(kconf)
        except KafkaException as e:
            raise ConfigurationError('unable to create consumer for {}: {}'.format(split, e)) from e
        return KafkaConnection(
            consumer=consumer,
            max_batch_size=reader_conf.max_batch_size,
        )

    return provider
