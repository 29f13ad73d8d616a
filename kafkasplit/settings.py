import os.path

PACKAGE_ROOT = os.path.dirname(__file__)

LOG_LEVEL = os.environ.get('KAFKASPLIT_LOG_LEVEL', 'INFO')

# Number of consecutive empty polls tolerated before a read fails.
RETRY_LIMIT = int(os.environ.get('KAFKASPLIT_RETRY_LIMIT', 5))

POLL_TIMEOUT_SECONDS = float(os.environ.get('KAFKASPLIT_POLL_TIMEOUT_SECONDS', 1.0))

RETRY_BACKOFF_SECONDS = float(os.environ.get('KAFKASPLIT_RETRY_BACKOFF_SECONDS', 0.1))

MAX_BATCH_SIZE = int(os.environ.get('KAFKASPLIT_MAX_BATCH_SIZE', 500))

GROUP_ID = os.environ.get('KAFKASPLIT_GROUP_ID', 'kafkasplit')

VARS = {
    'RETRY_LIMIT': RETRY_LIMIT,
    'POLL_TIMEOUT_SECONDS': POLL_TIMEOUT_SECONDS,
}

DEV_DIR = os.path.join(
    os.path.dirname(__file__),
    '..',
    'dev',
)

CONF_DIR = os.path.join(DEV_DIR, 'config')
