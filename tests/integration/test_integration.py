import json
import os
import tempfile

import pytest
from testcontainers.kafka import KafkaContainer

from kafkasplit import config
from kafkasplit.connections import Connection, new_connection_provider
from kafkasplit.fixtures import KafkaFaker
from kafkasplit.kafka import create_topics
from kafkasplit.lifecycle import plan, start
from kafkasplit.outputs import JSONLinesWriter
from kafkasplit.ranges import PartitionRange
from kafkasplit.readers import BoundedPartitionReader


@pytest.fixture(scope="module")
def bootstrap_server():
    # Start the Kafka container
    with KafkaContainer() as kafka:
        yield kafka.get_bootstrap_server()


class EmptyPulls(Connection):
    """
    Wraps a real connection and replaces the pulls selected by `empty`
    with an empty result.
    """
    def __init__(self, connection, empty, result=None):
        self._connection = connection
        self._empty = empty
        self._result = result
        self._pulls = 0

    def seek(self, topic, partition, offset):
        self._connection.seek(topic, partition, offset)

    def pull(self, timeout):
        pull_number = self._pulls
        self._pulls += 1
        if self._empty(pull_number):
            return self._result
        return self._connection.pull(timeout)

    def close(self):
        self._connection.close()


def new_conf(bootstrap_server, topic, **reader_kwargs):
    reader_kwargs.setdefault('max_batch_size', 3)
    return config.Conf(
        kafka=config.Kafka(brokers=[bootstrap_server], group_id='kafkasplit-it'),
        job=config.Job(topics=[topic], parallelism=2),
        reader=config.Reader(**reader_kwargs),
    )


def setup_topic(bootstrap_server, topic, num_partitions=3):
    create_topics([topic], bootstrap_server, num_partitions=num_partitions)
    kf = KafkaFaker(
        bootstrap_servers=bootstrap_server,
        topic=topic,
        num_batches=10,
        batch_size=10,
    )
    return kf.publish()


def read_splits(conf, splits, wrap=None):
    provider = new_connection_provider(conf.kafka, conf.reader)
    if wrap is not None:
        base_provider = provider

        def provider(split):
            return wrap(base_provider(split))

    keys_read = []
    for split in splits:
        reader = BoundedPartitionReader(connection_provider=provider, conf=conf.reader)
        reader.initialize(split)
        num_records = 0
        while reader.advance():
            keys_read.append(reader.current_key().decode())
            assert reader.current_value() is not None
            num_records += 1
        reader.close()

        assert num_records == split.num_records
    return keys_read


def test_read_data(bootstrap_server):
    topic = 'test-read-data'
    keys = setup_topic(bootstrap_server, topic)
    conf = new_conf(bootstrap_server, topic)

    keys_read = read_splits(conf, plan(conf))

    assert sorted(keys_read) == sorted(keys)
    assert len(set(keys_read)) == len(keys)


@pytest.mark.parametrize('result', [None, []])
def test_poll_returns_empty_at_start(bootstrap_server, result):
    topic = 'test-poll-empty-at-start-{}'.format('null' if result is None else 'empty')
    keys = setup_topic(bootstrap_server, topic)
    conf = new_conf(bootstrap_server, topic, retry_limit=8)

    keys_read = read_splits(
        conf,
        plan(conf),
        wrap=lambda c: EmptyPulls(c, empty=lambda n: n < 3, result=result),
    )

    assert sorted(keys_read) == sorted(keys)


@pytest.mark.parametrize('result', [None, []])
def test_poll_returns_empty_in_middle(bootstrap_server, result):
    topic = 'test-poll-empty-in-middle-{}'.format('null' if result is None else 'empty')
    keys = setup_topic(bootstrap_server, topic)
    conf = new_conf(bootstrap_server, topic)

    keys_read = read_splits(
        conf,
        plan(conf),
        wrap=lambda c: EmptyPulls(c, empty=lambda n: n == 1, result=result),
    )

    assert sorted(keys_read) == sorted(keys)


def test_poll_earliest_equals_ending(bootstrap_server):
    topic = 'test-poll-earliest-equals-ending'
    setup_topic(bootstrap_server, topic)
    conf = new_conf(bootstrap_server, topic)

    # every range starts where the partition currently ends
    splits = [
        PartitionRange(split.topic, split.partition, split.end_offset, split.end_offset)
        for split in plan(conf)
    ]

    assert read_splits(conf, splits, wrap=lambda c: EmptyPulls(c, empty=lambda n: True)) == []


def test_start_writes_every_record(bootstrap_server):
    topic = 'test-start-writes-every-record'
    keys = setup_topic(bootstrap_server, topic)
    conf = new_conf(bootstrap_server, topic)

    with tempfile.TemporaryDirectory() as temp_dir:
        path = os.path.join(temp_dir, 'records.jsonl')
        writer = JSONLinesWriter(path)
        stats = start(conf, plan(conf), writer)
        writer.close()

        with open(path) as f:
            written = [json.loads(line)['key'] for line in f]

    assert stats.num_errors == 0
    assert stats.num_records_read == len(keys)
    assert sorted(written) == sorted(keys)
