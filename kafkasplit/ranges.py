"""
Partition ranges and their persisted encodings.

The split file (dump_splits / load_splits) is what the CLI reads and
writes. The flat key/value encoding (write_offsets_to_configuration /
read_offsets_from_configuration) is a library API for hosts that carry
splits inside a job configuration mapping; the CLI does not use it.
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Tuple

from kafkasplit.errors import ConfigurationError


logger = logging.getLogger(__name__)

OFFSETS_PREFIX = 'kafkasplit.offsets'
TOPICS_KEY = OFFSETS_PREFIX + '.topics'

TopicPartitionKey = Tuple[str, int]

INTEGER = re.compile(r"^-?\d+$")


@dataclass(frozen=True)
class PartitionRange:
    """
    One partition's unit of work: the closed-open offset interval
    [start_offset, end_offset) of a single topic partition.

    A range where start_offset == end_offset is valid and contains
    zero records.
    """
    topic: str
    partition: int
    start_offset: int
    end_offset: int

    def __post_init__(self):
        if not isinstance(self.topic, str) or not self.topic:
            raise ConfigurationError('partition range requires a topic')
        if not all(_is_int(v) for v in (self.partition, self.start_offset, self.end_offset)):
            raise ConfigurationError(
                'partition and offsets must be integers: {!r}, {!r}, {!r}'.format(
                    self.partition,
                    self.start_offset,
                    self.end_offset,
                )
            )
        if not is_valid(self.partition, self.start_offset, self.end_offset):
            raise ConfigurationError(
                'malformed partition range {}[{}]: [{}, {})'.format(
                    self.topic,
                    self.partition,
                    self.start_offset,
                    self.end_offset,
                )
            )

    @property
    def num_records(self) -> int:
        return self.end_offset - self.start_offset

    @property
    def key(self) -> TopicPartitionKey:
        return self.topic, self.partition

    def is_empty(self) -> bool:
        return self.start_offset == self.end_offset

    def to_tuple(self) -> Tuple[str, int, int, int]:
        return self.topic, self.partition, self.start_offset, self.end_offset

    @classmethod
    def from_tuple(cls, t) -> 'PartitionRange':
        try:
            topic, partition, start_offset, end_offset = t
            if not topic:
                raise ValueError('missing topic')
            return cls(
                topic=str(topic),
                partition=_parse_int(partition),
                start_offset=_parse_int(start_offset),
                end_offset=_parse_int(end_offset),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError('invalid split description {!r}: {}'.format(t, e)) from e

    def __str__(self):
        return '{}[{}] [{}, {})'.format(self.topic, self.partition, self.start_offset, self.end_offset)


def _is_int(v) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _parse_int(v) -> int:
    if _is_int(v):
        return v
    if isinstance(v, str) and INTEGER.match(v.strip()):
        return int(v)
    raise ValueError('not an integer: {!r}'.format(v))


def is_valid(partition, start_offset, end_offset) -> bool:
    return partition >= 0 and start_offset >= 0 and end_offset >= start_offset


def build_ranges(start_offsets: Dict[TopicPartitionKey, int],
                 end_offsets: Dict[TopicPartitionKey, int]) -> List[PartitionRange]:
    """
    Pairs the earliest and latest offsets returned by the offset resolver
    into partition ranges, sorted by topic and partition.
    """
    ranges = []
    for key in sorted(start_offsets):
        if key not in end_offsets:
            raise ConfigurationError('no end offset for {}[{}]'.format(*key))
        topic, partition = key
        ranges.append(PartitionRange(
            topic=topic,
            partition=partition,
            start_offset=start_offsets[key],
            end_offset=end_offsets[key],
        ))
    return ranges


def _partition_key(topic, partition, bound):
    return '{}.topic.{}.partitions.{}.{}'.format(OFFSETS_PREFIX, topic, partition, bound)


def _partitions_key(topic):
    return '{}.topic.{}.partitions'.format(OFFSETS_PREFIX, topic)


def write_offsets_to_configuration(ranges: List[PartitionRange], conf: dict) -> dict:
    """
    Encodes the ranges into a flat job configuration mapping:

        kafkasplit.offsets.topics = "a,b"
        kafkasplit.offsets.topic.a.partitions = "0,1"
        kafkasplit.offsets.topic.a.partitions.0.start = "0"
        kafkasplit.offsets.topic.a.partitions.0.end = "10"

    :param ranges:
    :param conf: mutated in place and returned
    :return:
    """
    partitions_by_topic = {}
    for r in ranges:
        partitions_by_topic.setdefault(r.topic, []).append(r.partition)
        conf[_partition_key(r.topic, r.partition, 'start')] = str(r.start_offset)
        conf[_partition_key(r.topic, r.partition, 'end')] = str(r.end_offset)

    for topic, partitions in partitions_by_topic.items():
        conf[_partitions_key(topic)] = ','.join(str(p) for p in sorted(partitions))

    conf[TOPICS_KEY] = ','.join(sorted(partitions_by_topic))
    return conf


def read_offsets_from_configuration(conf: dict) -> List[PartitionRange]:
    topics = [t for t in conf.get(TOPICS_KEY, '').split(',') if t]
    ranges = []
    for topic in topics:
        raw_partitions = conf.get(_partitions_key(topic))
        if not raw_partitions:
            raise ConfigurationError('no partitions configured for topic {}'.format(topic))

        for partition in raw_partitions.split(','):
            start = conf.get(_partition_key(topic, partition, 'start'))
            end = conf.get(_partition_key(topic, partition, 'end'))
            if start is None or end is None:
                raise ConfigurationError(
                    'missing offsets for {}[{}]'.format(topic, partition),
                )
            ranges.append(PartitionRange.from_tuple((topic, partition, start, end)))

    logger.debug('read {} partition ranges from configuration'.format(len(ranges)))
    return ranges


def dump_splits(ranges: List[PartitionRange], f):
    json.dump([list(r.to_tuple()) for r in ranges], f, indent=2)


def load_splits(f) -> List[PartitionRange]:
    raw = json.load(f)
    if not isinstance(raw, list):
        raise ConfigurationError('split description must be a list, got {}'.format(type(raw).__name__))
    return [PartitionRange.from_tuple(t) for t in raw]
