# Copyright 2016-2019 University of Zurich
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
'''Console logging for the ``omeroext`` command line tool.

Only the ``omeroext`` logger is configured, so a host application that
embeds the package keeps control over its own logging.
'''
import sys
import logging

#: str: name of the logger the console handlers are attached to
LOGGER_NAME = 'omeroext'

#: Tuple[int]: logging levels selected by 0, 1 and 2 or more ``-v`` flags
LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)

FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

#: Tuple[str]: names of the handlers added by :func:`configure_logging`
HANDLER_NAMES = ('omeroext.out', 'omeroext.err')


def level_for_verbosity(verbosity):
    '''Maps the number of ``-v`` flags to a logging level.

    Parameters
    ----------
    verbosity: int
        number of verbosity flags; counts beyond the most verbose level
        select that level

    Returns
    -------
    int
        ``logging.WARNING``, ``logging.INFO`` or ``logging.DEBUG``

    Raises
    ------
    TypeError
        when `verbosity` is not an integer
    ValueError
        when `verbosity` is negative
    '''
    if not isinstance(verbosity, int):
        raise TypeError('Argument "verbosity" must have type int.')
    if verbosity < 0:
        raise ValueError('Argument "verbosity" must not be negative.')
    return LEVELS[min(verbosity, len(LEVELS) - 1)]


class _BelowLevel(logging.Filter):

    def __init__(self, level):
        super(_BelowLevel, self).__init__()
        self.level = level

    def filter(self, record):
        return record.levelno < self.level


def configure_logging(verbosity=0):
    '''Sends messages of the package logger to the console.

    Warnings and errors go to standard error, less severe messages to
    standard output. Handlers added by an earlier call are replaced, so
    the function may be called again to change the verbosity.

    Parameters
    ----------
    verbosity: int, optional
        number of verbosity flags (see :func:`level_for_verbosity`)

    Returns
    -------
    logging.Logger
        the configured ``omeroext`` logger
    '''
    level = level_for_verbosity(verbosity)
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if handler.name in HANDLER_NAMES:
            logger.removeHandler(handler)

    formatter = logging.Formatter(fmt=FORMAT, datefmt=DATE_FORMAT)
    out_handler = logging.StreamHandler(stream=sys.stdout)
    out_handler.name = 'omeroext.out'
    out_handler.addFilter(_BelowLevel(logging.WARNING))
    err_handler = logging.StreamHandler(stream=sys.stderr)
    err_handler.name = 'omeroext.err'
    err_handler.setLevel(logging.WARNING)
    for handler in (out_handler, err_handler):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False
    return logger
