import logging
from concurrent.futures import ThreadPoolExecutor

from .gpu_processes import list_device_processes
from .process_users import resolve_user

logger = logging.getLogger(__name__)


def resolve_process_users(process_ids, resolver=resolve_user, timeout=None):
    """
    Resolve every PID concurrently, one worker per PID.
    Returns {pid: user} holding only the PIDs that resolved to a non-empty user.
    """
    if not process_ids:
        return {}

    with ThreadPoolExecutor(max_workers=len(process_ids), thread_name_prefix="ResolveUser") as executor:
        futures = {pid: executor.submit(resolver, pid, timeout) for pid in process_ids}

    pid_users = {}
    for pid, future in futures.items():
        try:
            user = future.result()
        except Exception as e:
            logger.warning(f"Error resolving user for PID {pid}: {e}")
            continue
        if user:
            pid_users[pid] = user
    return pid_users


def collect_gpu_users(reader=list_device_processes, resolver=resolve_user, timeout=None):
    """
    Build the {gpu: {users}} mapping for one collection cycle.

    A PID is resolved once even if it shows up on several GPUs. The raw pairs
    are walked a second time afterwards so each of those GPUs still gets the
    user. GPUs where nothing resolved are left out.
    """
    pairs = reader(timeout=timeout)
    if not pairs:
        return {}

    # dict.fromkeys keeps first-seen order
    process_ids = list(dict.fromkeys(pair.process_id for pair in pairs))
    pid_users = resolve_process_users(process_ids, resolver=resolver, timeout=timeout)

    gpu_users = {}
    for device_id, process_id in pairs:
        user = pid_users.get(process_id)
        if user is None:
            continue
        gpu_users.setdefault(device_id, set()).add(user)

    logger.debug(
        f"Collected {len(pairs)} GPU processes, {len(pid_users)}/{len(process_ids)} PIDs resolved, "
        f"{len(gpu_users)} GPUs in use"
    )
    return gpu_users
