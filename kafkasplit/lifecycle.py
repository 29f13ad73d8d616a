import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List

from kafkasplit import config, offsets
from kafkasplit.outputs import Writer
from kafkasplit.ranges import PartitionRange, build_ranges
from kafkasplit.readers import RecordReader, new_reader_from_conf


logger = logging.getLogger(__name__)


@dataclass
class Stats:
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    num_records_read: int = 0
    num_splits: int = 0
    num_errors: int = 0
    records_per_split: Dict[str, int] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    total_throughput_per_second: float = 0


def plan(conf: config.Conf, consumer=None) -> List[PartitionRange]:
    """
    Resolves the earliest and latest offsets of every partition of the
    configured topics and returns one range per partition.
    """
    start_offsets = offsets.get_broker_offsets(
        conf.kafka,
        offsets.OffsetMarker.EARLIEST,
        conf.job.topics,
        consumer=consumer,
    )
    end_offsets = offsets.get_broker_offsets(
        conf.kafka,
        offsets.OffsetMarker.LATEST,
        conf.job.topics,
        consumer=consumer,
    )
    return build_ranges(start_offsets, end_offsets)


def read_split(reader: RecordReader, split: PartitionRange, context=None):
    """
    Yields every record of the split, closing the reader on the way out
    whether the read succeeded or not.
    """
    with reader:
        reader.initialize(split, context)
        yield from reader


class SplitRunner:
    """
    Reads a set of splits with one reader per split, in parallel.

    Readers are created by reader_factory and never reused across splits.
    A failed split is recorded in the stats; the remaining splits still run.
    """

    def __init__(self,
                 reader_factory: Callable[[], RecordReader],
                 writer: Writer,
                 parallelism=1,
                 context=None):
        self._reader_factory = reader_factory
        self._writer = writer
        self._parallelism = parallelism
        self._context = context
        self._lock = threading.Lock()
        self._stats = Stats()

    def run(self, splits: List[PartitionRange]) -> Stats:
        logger.info('reading {} splits with parallelism {}'.format(len(splits), self._parallelism))
        self._stats = Stats(num_splits=len(splits))

        with ThreadPoolExecutor(max_workers=self._parallelism) as executor:
            futures = {
                executor.submit(self._read, split): split for split in splits
            }
            for future in as_completed(futures):
                split = futures[future]
                try:
                    num_records = future.result()
                except Exception as e:
                    logger.error('{}: error reading {}: {}'.format(type(e).__name__, split, e))
                    with self._lock:
                        self._stats.num_errors += 1
                        self._stats.errors[str(split)] = str(e)
                    continue

                with self._lock:
                    self._stats.records_per_split[str(split)] = num_records

        self._writer.flush()

        diff = datetime.now(timezone.utc) - self._stats.start_time
        try:
            self._stats.total_throughput_per_second = self._stats.num_records_read // diff.total_seconds()
        except ZeroDivisionError:
            pass

        logger.info('read {} records from {} splits, {} failed'.format(
            self._stats.num_records_read,
            self._stats.num_splits,
            self._stats.num_errors,
        ))
        return self._stats

    def _read(self, split: PartitionRange) -> int:
        num_records = 0
        for record in read_split(self._reader_factory(), split, self._context):
            self._writer.write(record)
            num_records += 1
            with self._lock:
                self._stats.num_records_read += 1
        return num_records


def start(conf: config.Conf, splits: List[PartitionRange], writer: Writer) -> Stats:
    runner = SplitRunner(
        reader_factory=lambda: new_reader_from_conf(conf),
        writer=writer,
        parallelism=conf.job.parallelism,
        context=conf.reader,
    )
    return runner.run(splits)
