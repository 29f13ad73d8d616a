import logging
import json
import socket
from datetime import datetime, timezone

from confluent_kafka import Producer

logger = logging.getLogger(__name__)


class KafkaFaker:
    """
    Publishes keyed test messages. Keys have the form
    <prefix>_<batch>_<index> so every key written is unique.
    """
    def __init__(self,
                 bootstrap_servers,
                 topic,
                 key_prefix='batch',
                 num_batches=1,
                 batch_size=10,
                 security_protocol=None,
                 sasl_mechanism=None,
                 sasl_username=None,
                 sasl_password=None,
                 ssl_ca_location=None,
                 ssl_key_location=None,
                 ssl_certificate_location=None,
                 ssl_key_password=None,
                 ssl_endpoint_identification_algorithm=None
                ):
        self.bootstrap_servers = bootstrap_servers
        self.topic = topic
        self.key_prefix = key_prefix
        self.num_batches = num_batches
        self.batch_size = batch_size
        self.security_protocol = security_protocol
        self.sasl_mechanism = sasl_mechanism
        self.sasl_username = sasl_username
        self.sasl_password = sasl_password
        self.ssl_ca_location = ssl_ca_location
        self.ssl_key_location = ssl_key_location
        self.ssl_certificate_location = ssl_certificate_location
        self.ssl_key_password = ssl_key_password
        self.ssl_endpoint_identification_algorithm = ssl_endpoint_identification_algorithm

    def producer_conf(self) -> dict:
        conf = {
            'bootstrap.servers': self.bootstrap_servers,
            'client.id': socket.gethostname()
        }

        if self.security_protocol:
            conf['security.protocol'] = self.security_protocol
        if self.sasl_mechanism:
            conf['sasl.mechanism'] = self.sasl_mechanism
        if self.sasl_username and self.sasl_password:
            conf['sasl.username'] = self.sasl_username
            conf['sasl.password'] = self.sasl_password
        if self.ssl_ca_location:
            conf['ssl.ca.location'] = self.ssl_ca_location
        if self.ssl_key_location:
            conf['ssl.key.location'] = self.ssl_key_location
        if self.ssl_certificate_location:
            conf['ssl.certificate.location'] = self.ssl_certificate_location
        if self.ssl_key_password:
            conf['ssl.key.password'] = self.ssl_key_password
        if self.ssl_endpoint_identification_algorithm:
            conf['ssl.endpoint.identification.algorithm'] = self.ssl_endpoint_identification_algorithm
        return conf

    def publish(self):
        """
        Publishes num_batches * batch_size messages and returns the keys written.
        """
        producer = Producer(self.producer_conf())
        keys = []
        for batch in range(self.num_batches):
            for i in range(self.batch_size):
                key = '{}_{}_{}'.format(self.key_prefix, batch, i)
                value = json.dumps({
                    'key': key,
                    'timestamp': datetime.now(tz=timezone.utc).isoformat(),
                })
                producer.produce(self.topic, key=key, value=value)
                keys.append(key)
            producer.flush()
            logger.info('published batch {} of {}'.format(batch + 1, self.num_batches))
        return keys
