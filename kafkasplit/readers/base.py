from abc import ABC, abstractmethod


class RecordReader(ABC):
    """
    Abstract base class for pull based record readers.

    The host initializes a reader with a single split, calls advance()
    until it returns False, reads the current key/value after each
    successful advance and finally closes the reader.
    """
    @abstractmethod
    def initialize(self, split, context=None):
        pass

    @abstractmethod
    def advance(self) -> bool:
        pass

    @abstractmethod
    def current_record(self):
        pass

    def current_key(self):
        return self.current_record().key()

    def current_value(self):
        return self.current_record().value()

    @abstractmethod
    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __iter__(self):
        while self.advance():
            yield self.current_record()
