"""Protocol constants.

Keep these in one place to avoid stringly-typed message handling.
"""

# Jupyter messaging protocol version implemented here.
PROTOCOL_VERSION = "5.3"

# Separates routing identities from the signed message frames.
DELIMITER = b"<IDS|MSG>"

SIGNATURE_SCHEME = "hmac-sha256"

# Command (shell) channel requests and their replies.
EXECUTE_REQUEST = "execute_request"
EXECUTE_REPLY = "execute_reply"
INSPECT_REQUEST = "inspect_request"
INSPECT_REPLY = "inspect_reply"
COMPLETE_REQUEST = "complete_request"
COMPLETE_REPLY = "complete_reply"
HISTORY_REQUEST = "history_request"
HISTORY_REPLY = "history_reply"

# Broadcast (iopub) notifications.
STREAM = "stream"
DISPLAY_DATA = "display_data"
UPDATE_DISPLAY_DATA = "update_display_data"
CLEAR_OUTPUT = "clear_output"
EXECUTE_INPUT = "execute_input"
EXECUTE_RESULT = "execute_result"
ERROR = "error"
STATUS = "status"

# Kernel execution states carried by STATUS notifications.
STATE_BUSY = "busy"
STATE_IDLE = "idle"
STATE_STARTING = "starting"

# Reply statuses.
STATUS_OK = "ok"
STATUS_ERROR = "error"
STATUS_ABORT = "abort"

# Requests whose broadcast output always has a listener on this client.
LISTENING_REQUESTS = frozenset((EXECUTE_REQUEST,))
