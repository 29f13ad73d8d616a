import copy
import os
from dataclasses import dataclass, field
from typing import Optional, List

from jinja2 import Template
from yaml import safe_load

from kafkasplit import settings
from kafkasplit.errors import ConfigurationError


OUTPUT_TYPES = ('console', 'jsonl')


@dataclass
class KafkaSSLConfig:
    ca_location: str  # Path to the CA certificate
    certificate_location: str  # Path to the client certificate
    key_location: str  # Path to the client private key
    key_password: Optional[str] = None
    endpoint_identification_algorithm: Optional[str] = None  # e.g., https, none (default is https)


@dataclass
class KafkaSASLConfig:
    mechanism: str  # SASL mechanism (e.g., PLAIN, SCRAM-SHA-256)
    username: str  # SASL username
    password: str  # SASL password


@dataclass
class Kafka:
    brokers: List[str]
    group_id: str = settings.GROUP_ID
    security_protocol: Optional[str] = None  # Security protocol (e.g., PLAINTEXT, SSL, SASL_SSL)
    ssl: Optional[KafkaSSLConfig] = None  # SSL configuration
    sasl: Optional[KafkaSASLConfig] = None  # SASL configuration


@dataclass
class Reader:
    retry_limit: int = settings.RETRY_LIMIT
    poll_timeout_seconds: float = settings.POLL_TIMEOUT_SECONDS
    retry_backoff_seconds: float = settings.RETRY_BACKOFF_SECONDS
    max_batch_size: int = settings.MAX_BATCH_SIZE

    def __post_init__(self):
        if self.retry_limit < 0:
            raise ConfigurationError('retry_limit must be >= 0, got {}'.format(self.retry_limit))
        if self.poll_timeout_seconds <= 0:
            raise ConfigurationError(
                'poll_timeout_seconds must be > 0, got {}'.format(self.poll_timeout_seconds),
            )
        if self.retry_backoff_seconds < 0:
            raise ConfigurationError(
                'retry_backoff_seconds must be >= 0, got {}'.format(self.retry_backoff_seconds),
            )
        if self.max_batch_size < 1:
            raise ConfigurationError('max_batch_size must be >= 1, got {}'.format(self.max_batch_size))


@dataclass
class Job:
    topics: List[str]
    parallelism: int = 1


@dataclass
class Output:
    type: str = 'console'
    path: Optional[str] = None


@dataclass
class Conf:
    kafka: Kafka
    job: Job
    reader: Reader = field(default_factory=Reader)
    output: Output = field(default_factory=Output)


def render_config(path: str, setting_overrides={}) -> dict:
    with open(path) as f:
        template = Template(f.read())

    settings_vars = copy.deepcopy(settings.VARS)

    for key, value in os.environ.items():
        if key.startswith('KAFKASPLIT_'):
            settings_vars[key] = value

    for k, v in setting_overrides.items():
        settings_vars[k] = v

    rendered_template = template.render(
        **settings_vars
    )

    return safe_load(rendered_template)


def new_from_path(path: str, setting_overrides={}) -> Conf:
    """
    Initialize a new configuration instance
    directly from the filesystem.

    :param path:
    :param setting_overrides: template variables, take precedence over the environment
    :return:
    """
    config_dict = render_config(path, setting_overrides)
    return new_from_dict(config_dict)


def build_kafka_config_from_dict(conf) -> Kafka:
    ssl_config = None
    if 'ssl' in conf:
        ssl_config = KafkaSSLConfig(
            ca_location=conf['ssl'].get('ca_location'),
            certificate_location=conf['ssl'].get('certificate_location'),
            key_location=conf['ssl'].get('key_location'),
            key_password=conf['ssl'].get('key_password'),
            endpoint_identification_algorithm=conf['ssl'].get('endpoint_identification_algorithm'),
        )

    sasl_config = None
    if 'sasl' in conf:
        sasl_config = KafkaSASLConfig(
            mechanism=conf['sasl']['mechanism'],
            username=conf['sasl']['username'],
            password=conf['sasl']['password'],
        )

    brokers = conf['brokers']
    if isinstance(brokers, str):
        brokers = [b.strip() for b in brokers.split(',') if b.strip()]

    return Kafka(
        brokers=brokers,
        group_id=conf.get('group_id', settings.GROUP_ID),
        security_protocol=conf.get('security_protocol'),
        ssl=ssl_config,
        sasl=sasl_config,
    )


def build_reader_config_from_dict(conf) -> Reader:
    return Reader(
        retry_limit=int(conf.get('retry_limit', settings.RETRY_LIMIT)),
        poll_timeout_seconds=float(conf.get('poll_timeout_seconds', settings.POLL_TIMEOUT_SECONDS)),
        retry_backoff_seconds=float(conf.get('retry_backoff_seconds', settings.RETRY_BACKOFF_SECONDS)),
        max_batch_size=int(conf.get('max_batch_size', settings.MAX_BATCH_SIZE)),
    )


def build_output_config_from_dict(conf) -> Output:
    output = Output(
        type=conf.get('type', 'console'),
        path=conf.get('path'),
    )
    if output.type not in OUTPUT_TYPES:
        raise ConfigurationError('unsupported output type: {}'.format(output.type))
    if output.type == 'jsonl' and not output.path:
        raise ConfigurationError('jsonl output requires a path')
    return output


def new_from_dict(conf) -> Conf:
    try:
        kafka = build_kafka_config_from_dict(conf['kafka'])
        job = Job(
            topics=conf['job']['topics'],
            parallelism=int(conf['job'].get('parallelism', 1)),
        )
    except KeyError as e:
        raise ConfigurationError('missing required config key: {}'.format(e)) from e

    if job.parallelism < 1:
        raise ConfigurationError('job.parallelism must be >= 1, got {}'.format(job.parallelism))

    return Conf(
        kafka=kafka,
        job=job,
        reader=build_reader_config_from_dict(conf.get('reader') or {}),
        output=build_output_config_from_dict(conf.get('output') or {}),
    )
