import base64
import json
from abc import ABC, abstractmethod


class Serializer(ABC):
    @abstractmethod
    def encode(self, d: object) -> str:
        pass


class BytesEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, (bytes, bytearray)):
            try:
                return obj.decode('utf-8')
            except UnicodeDecodeError:
                return base64.b64encode(obj).decode('ascii')
        return super().default(obj)


class JSON(Serializer):
    def encode(self, d: object) -> str:
        return json.dumps(d, cls=BytesEncoder)
