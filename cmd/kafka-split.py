import json
import logging
import os

import click
import jsonschema
from opentelemetry import metrics as otelmetrics
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.sdk.metrics import MeterProvider
from prometheus_client import start_http_server

from kafkasplit import logging as kafkasplit_logging, settings
from kafkasplit.config import new_from_path, render_config
from kafkasplit.lifecycle import plan, start
from kafkasplit.outputs import new_writer_from_conf
from kafkasplit.ranges import dump_splits, load_splits


logger = logging.getLogger(__name__)


@click.group()
def cli():
    pass


@click.command(name='plan', help='Resolve the offset range of every partition and write the split description.')
@click.argument('config')
@click.argument('out', type=click.Path(dir_okay=False, writable=True))
def plan_cmd(config, out):
    conf = new_from_path(config)
    splits = plan(conf)
    with open(out, 'w') as f:
        dump_splits(splits, f)

    for split in splits:
        logger.info('planned {} ({} records)'.format(split, split.num_records))


@click.command(help='Read every split in the split description.')
@click.argument('config')
@click.argument('splits', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--metrics',
    type=click.Choice(['prometheus'], case_sensitive=False),
    default=None,
    help='Specify the metrics type.',
)
def read(config, splits, metrics):
    conf = new_from_path(config)

    if metrics == 'prometheus':
        logger.info('Starting Prometheus metrics server: http://localhost:8000')
        metric_reader = PrometheusMetricReader()
        provider = MeterProvider(metric_readers=[metric_reader])
        otelmetrics.set_meter_provider(provider)
        start_http_server(port=8000)

    with open(splits) as f:
        ranges = load_splits(f)

    writer = new_writer_from_conf(conf.output)
    try:
        stats = start(conf, ranges, writer)
    finally:
        writer.close()

    if stats.num_errors:
        raise click.ClickException('{} of {} splits failed: {}'.format(
            stats.num_errors,
            stats.num_splits,
            stats.errors,
        ))


@click.group(help='')
def config():
    pass


@click.command(name='validate', help='Validate the configuration file.')
@click.argument('config')
def config_validate(config):
    schema_path = os.path.join(settings.PACKAGE_ROOT, 'static', 'schemas', 'config.json')
    with open(schema_path, 'r') as f:
        schema = json.load(f)
    # load the file and render env vars
    config_dict = render_config(config)
    # validate against json schema
    jsonschema.validate(config_dict, schema)


config.add_command(config_validate)

cli.add_command(plan_cmd)
cli.add_command(read)
cli.add_command(config)


if __name__ == '__main__':
    kafkasplit_logging.init()
    cli()
