import logging
import subprocess

import psutil

logger = logging.getLogger(__name__)


def resolve_user(process_id, timeout=None):
    """
    Return the user owning `process_id` according to `ps`, or "" if it can't
    be determined (process exited, permission denied, ps missing).
    """
    try:
        result = subprocess.run(
            ["ps", "-o", "user=", "-p", str(process_id)],
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=True,
            timeout=timeout,
        )
    except subprocess.CalledProcessError as e:
        logger.warning(f"Error executing ps for PID {process_id} (exit {e.returncode})")
        return ""
    except subprocess.TimeoutExpired:
        logger.warning(f"Timeout expired after {timeout}s while executing ps for PID {process_id}")
        return ""
    except OSError as e:
        logger.warning(f"Error executing ps for PID {process_id}: {e}")
        return ""

    return result.stdout.strip()


def resolve_user_psutil(process_id, timeout=None):
    """
    psutil-based variant of resolve_user. No subprocess, so `timeout` is unused.
    """
    try:
        return psutil.Process(int(process_id)).username()
    except ValueError:
        logger.warning(f"Invalid PID {process_id!r}")
    except psutil.NoSuchProcess:
        logger.warning(f"Process {process_id} no longer exists")
    except psutil.AccessDenied:
        logger.warning(f"Permission denied for PID {process_id}")
    return ""


USER_RESOLVERS = {
    "ps": resolve_user,
    "psutil": resolve_user_psutil,
}
