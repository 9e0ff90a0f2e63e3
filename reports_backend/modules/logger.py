import contextvars
import datetime
import logging
import os
import re

# Set per request by the HTTP middleware; read when formatting log lines
current_user = contextvars.ContextVar("current_user", default="system")

LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}


class ReportsLogger:
    """
    Process-wide logger for the reporting backend.
    Line format: datetime : user_name : level : message
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._configure()
        return cls._instance

    def _configure(self):
        self.logger = logging.getLogger('reportes')
        level = logging.getLevelName(os.getenv('LOG_LEVEL', 'INFO').upper())
        if not isinstance(level, int):
            level = logging.INFO
        self.logger.setLevel(level)
        self.logger.propagate = False
        self.logger.handlers.clear()

        plain = logging.Formatter('%(message)s')
        for handler in self._handlers():
            handler.setLevel(level)
            handler.setFormatter(plain)
            self.logger.addHandler(handler)

        # Request/response chatter from the HTTP layer
        self.filter_patterns = [
            r'Request: \w+ /.*',
            r'Response: \d+',
        ]

    def _handlers(self):
        log_file = os.getenv('LOG_FILE') or os.path.join(
            os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'reportes.log'
        )
        handlers = [logging.StreamHandler()]
        try:
            handlers.insert(0, logging.FileHandler(log_file))
        except OSError:
            # Read-only deployments still get the console handler
            pass
        return handlers

    def _should_log(self, message):
        return not any(re.search(pattern, message) for pattern in self.filter_patterns)

    def _format_message(self, level, message):
        stamp = datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')
        return f"{stamp} : {current_user.get() or 'system'} : {level} : {message}"

    def _render(self, message, args):
        message = str(message)
        if args:
            message = message % args if '%' in message else message.format(*args)
        return message

    def log(self, level, message, *args):
        """Write one line at `level` ('debug', 'info', 'warning' or 'error'). No tracebacks."""
        text = self._render(message, args)
        if self._should_log(text):
            self.logger.log(LEVELS[level], self._format_message(level, text))

    def add_filter_pattern(self, pattern):
        self.filter_patterns.append(pattern)

    def remove_filter_pattern(self, pattern):
        if pattern in self.filter_patterns:
            self.filter_patterns.remove(pattern)


logger = ReportsLogger()


def debug(message, *args):
    logger.log('debug', message, *args)


def info(message, *args):
    logger.log('info', message, *args)


def warning(message, *args):
    logger.log('warning', message, *args)


def error(message, *args):
    logger.log('error', message, *args)


def add_filter_pattern(pattern):
    logger.add_filter_pattern(pattern)


def remove_filter_pattern(pattern):
    logger.remove_filter_pattern(pattern)
