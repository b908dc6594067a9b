"""Port and process probes."""

import os
import socket


def is_port_in_use(port: int, host: str = 'localhost') -> bool:
    """True if something is listening on host:port."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.settimeout(1)
            s.connect((host, port))
            return True
    except (socket.timeout, ConnectionRefusedError, OSError):
        return False


def pid_alive(pid: int) -> bool:
    """Signal 0 probe. A process owned by another user still counts as alive."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True
