""" Connection and client configuration. A kernel advertises how to reach
    it through a connection file: a small JSON document naming the transport,
    the address, the signing key, and one port per channel. This module
    loads those files, finds them in the usual Jupyter locations, and holds
    the settings that tune the client runtime itself.
"""

import dataclasses
import glob
import os
import sys
from typing import Optional

from . import json
from .protocol import fields


@dataclasses.dataclass
class ConnectionInfo:
    """ The contents of a kernel connection file. Only the shell (command)
        and iopub (broadcast) ports are used by this client; the others are
        retained so the information round-trips intact.
    """

    signature_scheme: str = fields.SIGNATURE_SCHEME
    transport: str = 'tcp'
    ip: str = '127.0.0.1'
    key: str = ''
    shell_port: int = 0
    iopub_port: int = 0
    stdin_port: int = 0
    control_port: int = 0
    hb_port: int = 0
    kernel_name: str = ''

    def __post_init__(self):

        if (self.signature_scheme or self.key) and self.signature_scheme != fields.SIGNATURE_SCHEME:
            raise ValueError('unsupported signature scheme: ' + repr(self.signature_scheme))

        if self.transport not in ('tcp', 'ipc'):
            raise ValueError('unsupported transport: ' + repr(self.transport))


    @classmethod
    def from_dict(cls, info):
        """ Build a :class:`ConnectionInfo` from a decoded connection file.
            Keys this class does not know about are ignored.
        """

        known = set(field.name for field in dataclasses.fields(cls))
        values = dict()

        for key, value in info.items():
            if key in known:
                values[key] = value

        for key in ('shell_port', 'iopub_port', 'stdin_port', 'control_port', 'hb_port'):
            if key in values:
                values[key] = int(values[key])

        return cls(**values)


    @classmethod
    def load(cls, path):
        """ Read the connection file at *path*.
        """

        with open(path, 'rb') as contents:
            raw = contents.read()

        try:
            info = json.loads(raw)
        except json.decode_errors as exc:
            raise ValueError('invalid connection file %s: %s' % (path, exc)) from exc

        if not isinstance(info, dict):
            raise ValueError('invalid connection file %s: not a JSON object' % (path))

        return cls.from_dict(info)


    def to_dict(self):
        return dataclasses.asdict(self)


    @property
    def signing_key(self):
        return self.key.encode('utf-8')


    def address(self, port):
        """ Return the ZeroMQ endpoint for the specified *port*.
        """

        if self.transport == 'ipc':
            return 'ipc://%s-%d' % (self.ip, port)
        return 'tcp://%s:%d' % (self.ip, port)


    @property
    def shell_address(self):
        return self.address(self.shell_port)


    @property
    def iopub_address(self):
        return self.address(self.iopub_port)


# end of class ConnectionInfo



@dataclasses.dataclass
class ClientConfig:
    """ Settings for a :class:`kernelclient.Client`.

        :ivar username: Reported in the header of every command.
        :ivar reply_timeout: Seconds to wait for a command reply; None waits
            forever.
        :ivar channel_buffer: Maximum number of undelivered notifications per
            output channel before the background thread blocks; zero means
            unbounded.
        :ivar orphan_grace: Seconds after an output channel closes during
            which late notifications for it are quietly dropped.
        :ivar abandon_grace: Seconds after a failed send or receive during
            which notifications for the abandoned command are quietly
            dropped.
        :ivar poll_interval: Seconds each background poll waits before
            checking for shutdown.
    """

    username: str = 'kernelclient'
    reply_timeout: Optional[float] = None
    channel_buffer: int = 1024
    orphan_grace: float = 1.0
    abandon_grace: float = 300.0
    poll_interval: float = 0.1


# end of class ClientConfig



def jupyter_data_dir():

    if 'JUPYTER_DATA_DIR' in os.environ:
        return os.environ['JUPYTER_DATA_DIR']

    home = os.path.realpath(os.path.expanduser('~'))

    if sys.platform == 'darwin':
        return os.path.join(home, 'Library', 'Jupyter')

    if os.name == 'nt':
        appdata = os.environ.get('APPDATA')
        if appdata:
            return os.path.join(appdata, 'jupyter')
        return os.path.join(home, '.jupyter', 'data')

    xdg = os.environ.get('XDG_DATA_HOME')
    if not xdg:
        xdg = os.path.join(home, '.local', 'share')
    return os.path.join(xdg, 'jupyter')



def jupyter_runtime_dir():
    """ Return the directory where running kernels write their connection
        files.
    """

    if 'JUPYTER_RUNTIME_DIR' in os.environ:
        return os.environ['JUPYTER_RUNTIME_DIR']
    return os.path.join(jupyter_data_dir(), 'runtime')



def find_connection_file(filename='kernel-*.json', paths=None):
    """ Locate a connection file. An exact *filename* (or absolute path) is
        returned if it exists in one of the search *paths*; otherwise the
        name is treated as a glob pattern, and the most recently accessed
        match is returned. The default search path is the current directory
        followed by the Jupyter runtime directory.
    """

    if not paths:
        paths = ['.', jupyter_runtime_dir()]

    filename = filename.strip('"').strip("'")

    if os.path.isabs(filename) and os.path.isfile(filename):
        return filename

    for path in paths:
        candidate = os.path.join(os.path.expanduser(path), filename)
        if os.path.isfile(candidate):
            return os.path.abspath(candidate)

    if '*' in filename:
        pattern = filename
    else:
        pattern = '*%s*' % (filename)

    matches = list()
    for path in paths:
        matches.extend(glob.glob(os.path.join(os.path.expanduser(path), pattern)))

    if len(matches) == 0:
        raise OSError('could not find %s in %s' % (filename, paths))

    matches = [os.path.abspath(match) for match in matches]
    matches.sort(key=lambda match: os.stat(match).st_atime)
    return matches[-1]


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
