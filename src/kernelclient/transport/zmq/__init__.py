"""ZeroMQ transports: a DEALER socket for commands, a SUB socket for broadcasts."""

import zmq

# Shared by every socket this package creates.
zmq_context = zmq.Context()

from . import command
from . import subscribe
