class ReaderError(Exception):
    pass


class ConfigurationError(ReaderError):
    """
    Raised for malformed ranges, invalid configuration or a connection that
    cannot be established. Never retried.
    """
    pass


class IllegalStateError(ReaderError):
    """
    Raised when the reader API is used out of order, e.g. reading the
    current record before a successful advance.
    """
    pass


class ReaderClosedError(IllegalStateError):
    pass


class FetchError(ReaderError):
    pass


class ExhaustedRetriesError(ReaderError):
    def __init__(self, topic, partition, offset, attempts):
        self.topic = topic
        self.partition = partition
        self.offset = offset
        self.attempts = attempts
        super().__init__(
            'no records returned for {}[{}] at offset {} after {} attempts'.format(
                topic,
                partition,
                offset,
                attempts,
            )
        )
