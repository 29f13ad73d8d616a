import enum
import logging
from typing import Dict, List

from confluent_kafka import Consumer, KafkaException, TopicPartition

from kafkasplit import config
from kafkasplit.connections import new_consumer_conf
from kafkasplit.errors import ConfigurationError
from kafkasplit.ranges import TopicPartitionKey


logger = logging.getLogger(__name__)


class OffsetMarker(str, enum.Enum):
    EARLIEST = "earliest"
    LATEST = "latest"


def get_broker_offsets(conf: config.Kafka,
                       marker: OffsetMarker,
                       topics: List[str],
                       timeout=10.0,
                       consumer=None) -> Dict[TopicPartitionKey, int]:
    """
    Looks up the earliest (low watermark) or latest (high watermark)
    offset of every partition of the given topics.

    :param conf:
    :param marker:
    :param topics:
    :param timeout: seconds to wait for each metadata request
    :param consumer: an existing consumer to query; one is created (and closed) otherwise
    :return: {(topic, partition): offset}
    """
    marker = OffsetMarker(marker)
    owns_consumer = consumer is None
    if owns_consumer:
        consumer = Consumer(new_consumer_conf(conf))

    offsets = {}
    try:
        for topic in topics:
            metadata = consumer.list_topics(topic, timeout=timeout)
            topic_metadata = metadata.topics.get(topic)
            if topic_metadata is None or topic_metadata.error is not None:
                raise ConfigurationError('unable to read metadata for topic {}: {}'.format(
                    topic,
                    topic_metadata.error if topic_metadata is not None else 'not found',
                ))

            for partition in sorted(topic_metadata.partitions):
                low, high = consumer.get_watermark_offsets(
                    TopicPartition(topic, partition),
                    timeout=timeout,
                )
                offsets[(topic, partition)] = low if marker is OffsetMarker.EARLIEST else high
    except KafkaException as e:
        raise ConfigurationError('unable to resolve {} offsets for {}: {}'.format(
            marker.value,
            topics,
            e,
        )) from e
    finally:
        if owns_consumer:
            consumer.close()

    logger.info('resolved {} offsets for {} partitions'.format(marker.value, len(offsets)))
    return offsets
