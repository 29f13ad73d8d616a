import enum
import logging
import threading
import time
from collections import deque

from opentelemetry import metrics

from kafkasplit import config
from kafkasplit.connections import ConnectionProvider
from kafkasplit.errors import (
    ConfigurationError,
    ExhaustedRetriesError,
    IllegalStateError,
    ReaderClosedError,
)
from kafkasplit.ranges import PartitionRange
from .base import RecordReader


logger = logging.getLogger(__name__)
meter = metrics.get_meter('kafkasplit.readers')

records_read_counter = meter.create_counter(
    name='records_read',
    description='Number of records yielded by partition readers',
    unit='records',
)

empty_poll_counter = meter.create_counter(
    name='empty_poll_count',
    description='Number of polls that returned no unread records',
    unit='polls',
)

retries_exhausted_counter = meter.create_counter(
    name='retries_exhausted_count',
    description='Number of reads that failed after exhausting the retry budget',
    unit='count',
)

poll_latency = meter.create_histogram(
    name='poll_latency',
    description='Latency of a single pull from the underlying connection',
    unit='seconds',
)


class State(enum.Enum):
    UNINITIALIZED = 'uninitialized'
    READY = 'ready'
    ADVANCING = 'advancing'
    RETRYING = 'retrying'
    EXHAUSTED = 'exhausted'
    FAILED = 'failed'
    CLOSED = 'closed'


IN_FLIGHT = (State.ADVANCING, State.RETRYING)


class BoundedPartitionReader(RecordReader):
    """
    Reads exactly the records in [start_offset, end_offset) of one
    partition.

    Completion is decided only by the position reaching end_offset. An
    empty pull is never taken as the end of the range: it is retried up
    to retry_limit times, after which ExhaustedRetriesError is raised.

    close() may be called from another thread while advance() is
    retrying; the retry loop observes the close signal and the advancing
    thread releases the connection.
    """

    def __init__(self, connection_provider: ConnectionProvider, conf: config.Reader | None = None):
        self._connection_provider = connection_provider
        self._conf = conf or config.Reader()
        self._split = None
        self._connection = None
        self._state = State.UNINITIALIZED
        self._next_offset = None
        self._buffer = deque()
        self._current = None
        self._retries = 0
        self._closing = threading.Event()
        self._lock = threading.Lock()

    @property
    def state(self) -> State:
        return self._state

    @property
    def next_offset(self):
        return self._next_offset

    @property
    def retries(self) -> int:
        return self._retries

    @property
    def split(self):
        return self._split

    def initialize(self, split, context: config.Reader | None = None):
        """
        Binds the reader to a split and positions a new connection at the
        split's start offset.

        :param split: a PartitionRange or its (topic, partition, start, end) tuple
        :param context: reader settings for this task, overrides the constructor's
        :return:
        """
        if self._state is State.CLOSED:
            raise ReaderClosedError('initialize() called on a closed reader')
        if self._state is not State.UNINITIALIZED:
            raise IllegalStateError('reader already initialized, state={}'.format(self._state.value))

        if not isinstance(split, PartitionRange):
            split = PartitionRange.from_tuple(split)

        if context is not None:
            self._conf = context

        try:
            connection = self._connection_provider(split)
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError('unable to connect for {}: {}'.format(split, e)) from e

        try:
            connection.seek(split.topic, split.partition, split.start_offset)
        except Exception as e:
            self._close_connection(connection)
            raise ConfigurationError('unable to seek {}: {}'.format(split, e)) from e

        with self._lock:
            if self._closing.is_set():
                self._close_connection(connection)
                raise ReaderClosedError('reader closed during initialization')
            self._split = split
            self._connection = connection
            self._next_offset = split.start_offset
            self._state = State.READY

        logger.info('initialized reader for {} (retry_limit={})'.format(split, self._conf.retry_limit))

    def advance(self) -> bool:
        self._current = None

        if self._state is State.UNINITIALIZED:
            raise IllegalStateError('advance() called before initialize()')
        if self._state is State.CLOSED:
            raise ReaderClosedError('advance() called on a closed reader')
        if self._state is State.FAILED:
            raise IllegalStateError('advance() called on a failed reader for {}'.format(self._split))
        if self._state is State.EXHAUSTED:
            return False

        if self._next_offset >= self._split.end_offset:
            self._exhaust()
            return False

        with self._lock:
            if self._closing.is_set():
                raise ReaderClosedError('advance() called on a closing reader')
            self._state = State.ADVANCING

        try:
            record = self._next_in_range()
        except Exception:
            if self._settle(State.FAILED):
                raise ReaderClosedError('reader closed while reading {}'.format(self._split))
            raise

        if self._settle(State.READY):
            raise ReaderClosedError('reader closed while reading {}'.format(self._split))

        if record is None:
            # the partition holds no further records below end_offset
            logger.debug('{}: next record lies beyond the range at offset {}'.format(
                self._split,
                self._next_offset,
            ))
            self._next_offset = self._split.end_offset
            self._exhaust()
            return False

        if record.offset() != self._next_offset:
            logger.debug('{}: offsets {}-{} absent from partition'.format(
                self._split,
                self._next_offset,
                record.offset() - 1,
            ))

        self._current = record
        self._next_offset = record.offset() + 1
        records_read_counter.add(1, attributes={
            'topic': self._split.topic,
        })
        return True

    def current_record(self):
        if self._state is State.CLOSED:
            raise ReaderClosedError('reader is closed')
        if self._current is None:
            raise IllegalStateError(
                'no current record, state={}: advance() must return True first'.format(self._state.value),
            )
        return self._current

    def close(self):
        with self._lock:
            if self._state is State.CLOSED:
                return
            self._closing.set()
            if self._state in IN_FLIGHT:
                # the advancing thread observes the signal and releases
                return
            self._state = State.CLOSED
        self._release()

    def _exhaust(self):
        with self._lock:
            if self._closing.is_set():
                raise ReaderClosedError('reader closed while reading {}'.format(self._split))
            self._state = State.EXHAUSTED
        self._buffer.clear()
        logger.info('finished reading {}'.format(self._split))

    def _settle(self, state) -> bool:
        """
        Leaves the in-flight state. Returns True if a close was requested
        meanwhile, in which case the reader is closed instead.
        """
        with self._lock:
            if not self._closing.is_set():
                self._state = state
                return False
            self._state = State.CLOSED
        self._release()
        return True

    def _next_in_range(self):
        if not self._buffer:
            self._fill_buffer()

        record = self._buffer.popleft()
        if record.offset() >= self._split.end_offset:
            # the rest of the batch belongs to other ranges
            self._buffer.clear()
            return None
        return record

    def _fill_buffer(self):
        while True:
            if self._closing.is_set():
                raise ReaderClosedError('reader closed while reading {}'.format(self._split))

            batch = self._pull()
            unread = [r for r in batch or () if r.offset() >= self._next_offset]
            if unread:
                self._retries = 0
                self._buffer.extend(unread)
                return

            self._retries += 1
            empty_poll_counter.add(1, attributes={
                'topic': self._split.topic,
            })
            logger.debug('{}: empty poll at offset {} ({} of {} retries)'.format(
                self._split,
                self._next_offset,
                self._retries,
                self._conf.retry_limit,
            ))

            if self._retries > self._conf.retry_limit:
                retries_exhausted_counter.add(1, attributes={
                    'topic': self._split.topic,
                })
                logger.error('{}: giving up at offset {} after {} empty polls'.format(
                    self._split,
                    self._next_offset,
                    self._retries,
                ))
                raise ExhaustedRetriesError(
                    topic=self._split.topic,
                    partition=self._split.partition,
                    offset=self._next_offset,
                    attempts=self._retries,
                )

            with self._lock:
                if self._state is State.ADVANCING:
                    self._state = State.RETRYING

            if self._closing.wait(self._conf.retry_backoff_seconds):
                raise ReaderClosedError('reader closed while retrying {}'.format(self._split))

            with self._lock:
                if self._state is State.RETRYING:
                    self._state = State.ADVANCING

    def _pull(self):
        start = time.monotonic()
        batch = self._connection.pull(self._conf.poll_timeout_seconds)
        poll_latency.record(time.monotonic() - start, attributes={
            'topic': self._split.topic,
        })
        return batch

    def _release(self):
        connection, self._connection = self._connection, None
        self._buffer.clear()
        self._current = None
        if connection is not None:
            self._close_connection(connection)
            logger.debug('released connection for {}'.format(self._split))

    def _close_connection(self, connection):
        try:
            connection.close()
        except Exception as e:
            logger.warning('error closing connection for {}: {}'.format(self._split, e))
