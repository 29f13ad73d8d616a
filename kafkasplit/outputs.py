import sys
import threading
from abc import abstractmethod, ABC

from kafkasplit import config
from kafkasplit.serde import JSON


def record_to_dict(record) -> dict:
    return {
        'topic': record.topic(),
        'partition': record.partition(),
        'offset': record.offset(),
        'key': record.key(),
        'value': record.value(),
    }


class Writer(ABC):
    @abstractmethod
    def write(self, record):
        """
        Writes a single record to the underlying storage.

        :param record:
        :return:
        """
        raise NotImplementedError()

    def flush(self):
        pass

    def close(self):
        pass


class ConsoleWriter(Writer):
    def __init__(self, f=sys.stdout, serializer=JSON()):
        self.f = f
        self.serializer = serializer
        self._lock = threading.Lock()

    def write(self, record):
        line = self.serializer.encode(record_to_dict(record))
        with self._lock:
            self.f.write(line)
            self.f.write('\n')

    def flush(self):
        self.f.flush()


class JSONLinesWriter(ConsoleWriter):
    def __init__(self, path, serializer=JSON()):
        super().__init__(f=open(path, 'w'), serializer=serializer)
        self.path = path

    def close(self):
        self.f.close()


def new_writer_from_conf(conf: config.Output) -> Writer:
    if conf.type == 'console':
        return ConsoleWriter()
    elif conf.type == 'jsonl':
        return JSONLinesWriter(conf.path)

    raise NotImplementedError('unsupported output type: {}'.format(conf.type))
