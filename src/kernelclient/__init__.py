""" Python client for Jupyter kernels. This includes the signed wire codec
    for kernel messages, typed message content, and a client runtime that
    issues commands and routes the resulting output back to the caller.
"""

import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Utility components.

from . import json

# Submodules used by multiple other components.

from . import protocol
from . import config
from . import routing
from . import transport

# Primary public-facing interfaces.

from . import client
from .client import Client, ClientClosedError, OrphanedNotificationError
from .config import ClientConfig, ConnectionInfo, find_connection_file
from .routing import ChannelClosed, OutputChannel


def connect(filename='kernel-*.json', config=None, **kwargs):
    """ Find a connection file with :func:`find_connection_file`, and return
        a :class:`Client` connected to the kernel it describes. Additional
        keyword arguments are passed to the :class:`Client` constructor.
    """

    path = find_connection_file(filename)
    info = ConnectionInfo.load(path)
    return Client(info, config, **kwargs)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
