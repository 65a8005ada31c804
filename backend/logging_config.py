"""Backend logging: JSON lines on disk, one readable line per event on the console.

Endpoints attach the records an event is about with ``log_fields``::

    logger.info("Label stored", extra=log_fields(shipment_id=7, tracking_number='123'))

Those fields become top-level keys in ``fast_shipper.log`` and trailing
``key=value`` pairs on the console, so a shipment or package can be followed
across requests with a plain grep.
"""
import logging
import os
import json
from logging.handlers import RotatingFileHandler
from flask import g, has_request_context, request
from shared.models import now

LOG_FILE_NAME = 'fast_shipper.log'
QUIET_LOGGERS = ('werkzeug', 'sqlalchemy.engine', 'urllib3', 'requests')


def log_fields(**fields):
    """``extra=`` payload for a log call; ``None`` values are left out."""
    return {'extra_fields': {key: value for key, value in fields.items() if value is not None}}


def request_fields():
    """Method, path and acting user of the request being served, if any."""
    if not has_request_context():
        return {}
    fields = {'method': request.method, 'path': request.path}
    user = g.get('user')
    if user is not None:
        fields['user_id'] = user.id
    admin = g.get('admin')
    if admin is not None:
        fields['admin_id'] = admin.id
    return fields


def record_fields(record):
    fields = request_fields()
    fields.update(getattr(record, 'extra_fields', None) or {})
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with request and domain fields at the top level."""

    def format(self, record):
        log_entry = {
            'timestamp': now().isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        log_entry.update(record_fields(record))

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Plain text line followed by the record's domain fields."""

    def __init__(self):
        super().__init__('%(asctime)s %(levelname)-8s %(name)-20s %(message)s')

    def format(self, record):
        line = super().format(record)
        fields = getattr(record, 'extra_fields', None)
        if fields:
            line += '  ' + ' '.join(f"{key}={value}" for key, value in fields.items())
        return line


def setup_logging(app=None):
    """Install the file and console handlers on the root logger.

    ``LOG_LEVEL`` and ``LOG_DIR`` come from the app config when an app is
    given, otherwise from the environment.
    """
    settings = app.config if app is not None else os.environ
    log_level_name = str(settings.get('LOG_LEVEL') or 'INFO').upper()
    log_level = getattr(logging, log_level_name, logging.INFO)

    logs_dir = settings.get('LOG_DIR') or os.path.join(os.path.dirname(__file__), '..', 'logs')
    os.makedirs(logs_dir, exist_ok=True)
    log_file = os.path.join(logs_dir, LOG_FILE_NAME)

    file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
    file_handler.setFormatter(StructuredFormatter())

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(ConsoleFormatter())

    root = logging.getLogger()
    root.setLevel(log_level)
    # The factory runs once per test app
    for handler in list(root.handlers):
        if isinstance(handler, (RotatingFileHandler, logging.StreamHandler)) and \
                isinstance(handler.formatter, (StructuredFormatter, ConsoleFormatter)):
            root.removeHandler(handler)
            handler.close()
    root.addHandler(file_handler)
    root.addHandler(console_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.debug("Logging initialized", extra=log_fields(log_level=log_level_name, log_file=log_file))
    return root
