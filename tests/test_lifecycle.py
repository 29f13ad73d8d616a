import unittest
from unittest.mock import MagicMock

from kafkasplit import config
from kafkasplit.connections import Connection, Record
from kafkasplit.errors import ExhaustedRetriesError
from kafkasplit.lifecycle import SplitRunner, plan, read_split
from kafkasplit.ranges import PartitionRange
from kafkasplit.readers import BoundedPartitionReader


class StaticLog(Connection):
    """
    A multi-partition in-memory log. Each connection reads one partition.
    """
    def __init__(self, log, empty_partitions=()):
        self.log = log
        self.empty_partitions = empty_partitions
        self.partition = None
        self.position = None
        self.closed = False

    def seek(self, topic, partition, offset):
        self.partition = partition
        self.position = offset

    def pull(self, timeout):
        if self.partition in self.empty_partitions:
            return None
        records = self.log[self.partition][self.position:self.position + 2]
        self.position += len(records)
        return records

    def close(self):
        self.closed = True


def make_log(sizes):
    return {
        partition: [
            Record(
                key='p{}_{}'.format(partition, offset),
                value=b'{}',
                topic='events',
                partition=partition,
                offset=offset,
            )
            for offset in range(size)
        ]
        for partition, size in sizes.items()
    }


class InMemoryWriter:
    def __init__(self):
        self.records = []
        self.flushed = False

    def write(self, record):
        self.records.append(record)

    def flush(self):
        self.flushed = True


class ReadSplitTestCase(unittest.TestCase):

    def test_yields_records_and_closes(self):
        connection = StaticLog(make_log({0: 10}))
        reader = BoundedPartitionReader(connection_provider=lambda split: connection)

        keys = [r.key() for r in read_split(reader, PartitionRange('events', 0, 0, 10))]

        self.assertEqual(['p0_{}'.format(i) for i in range(10)], keys)
        self.assertTrue(connection.closed)

    def test_closes_on_failure(self):
        connection = StaticLog(make_log({0: 10}), empty_partitions=(0,))
        reader = BoundedPartitionReader(
            connection_provider=lambda split: connection,
            conf=config.Reader(retry_limit=1, retry_backoff_seconds=0),
        )

        with self.assertRaises(ExhaustedRetriesError):
            list(read_split(reader, PartitionRange('events', 0, 0, 10)))
        self.assertTrue(connection.closed)


class SplitRunnerTestCase(unittest.TestCase):

    def new_runner(self, log, writer, empty_partitions=(), parallelism=2):
        connections = []

        def provider(split):
            c = StaticLog(log, empty_partitions)
            connections.append(c)
            return c

        runner = SplitRunner(
            reader_factory=lambda: BoundedPartitionReader(connection_provider=provider),
            writer=writer,
            parallelism=parallelism,
            context=config.Reader(retry_limit=2, retry_backoff_seconds=0),
        )
        return runner, connections

    def test_reads_all_splits(self):
        writer = InMemoryWriter()
        runner, connections = self.new_runner(make_log({0: 10, 1: 4, 2: 7}), writer)
        splits = [
            PartitionRange('events', 0, 0, 10),
            PartitionRange('events', 1, 4, 4),
            PartitionRange('events', 2, 2, 7),
        ]

        stats = runner.run(splits)

        self.assertEqual(15, stats.num_records_read)
        self.assertEqual(3, stats.num_splits)
        self.assertEqual(0, stats.num_errors)
        self.assertEqual({
            'events[0] [0, 10)': 10,
            'events[1] [4, 4)': 0,
            'events[2] [2, 7)': 5,
        }, stats.records_per_split)
        self.assertEqual(15, len({r.key() for r in writer.records}))
        self.assertTrue(writer.flushed)
        self.assertEqual(3, len(connections))
        self.assertTrue(all(c.closed for c in connections))

    def test_failed_split_does_not_stop_others(self):
        writer = InMemoryWriter()
        runner, connections = self.new_runner(
            make_log({0: 10, 1: 4}),
            writer,
            empty_partitions=(1,),
        )

        stats = runner.run([
            PartitionRange('events', 0, 0, 10),
            PartitionRange('events', 1, 0, 4),
        ])

        self.assertEqual(1, stats.num_errors)
        self.assertIn('events[1] [0, 4)', stats.errors)
        self.assertEqual({'events[0] [0, 10)': 10}, stats.records_per_split)
        self.assertTrue(all(c.closed for c in connections))


class PlanTestCase(unittest.TestCase):

    def test_plan(self):
        consumer = MagicMock()
        metadata = MagicMock()
        topic = MagicMock()
        topic.error = None
        topic.partitions = {0: MagicMock(), 1: MagicMock()}
        metadata.topics = {'events': topic}
        consumer.list_topics.return_value = metadata
        consumer.get_watermark_offsets.side_effect = lambda tp, timeout: {0: (0, 10), 1: (5, 5)}[tp.partition]

        conf = config.Conf(
            kafka=config.Kafka(brokers=['localhost:9092']),
            job=config.Job(topics=['events']),
        )

        self.assertEqual([
            PartitionRange('events', 0, 0, 10),
            PartitionRange('events', 1, 5, 5),
        ], plan(conf, consumer=consumer))
