# external_runner.py - PATH resolution and synchronous child launching
from __future__ import annotations
import errno
import logging
import os
import stat
import subprocess
import sys
from typing import Mapping, Optional, Sequence, TextIO

from tokenizer import PATH_SEPARATOR, tokenize

LOG = logging.getLogger("hsh.external_runner")

NOT_FOUND = 127
NOT_EXEC  = 126


class CommandNotFound(Exception):
    def __init__(self, cmd: str):
        super().__init__(cmd)
        self.cmd = cmd


class PermissionDenied(Exception):
    def __init__(self, path: str):
        super().__init__(path)
        self.path = path


class ProcessCreationError(Exception):
    """The child process could not be created."""


def resolve_executable(cmd: str, env: Mapping[str, str]) -> Optional[str]:
    """Return a path for cmd or None.
    If cmd contains '/', treat it as a direct path. A bare name that exists
    in the current directory is also taken as is. Otherwise search the
    directories of env["PATH"] in order; the first existing entry wins.
    Only existence is tested here, not executability."""
    if "/" in cmd:
        return cmd if os.path.exists(cmd) else None
    if os.path.exists(cmd):
        return cmd

    search_path = env.get("PATH")
    if search_path is None:
        LOG.debug("PATH unset, cannot resolve %s", cmd)
        return None
    for directory in tokenize(search_path, PATH_SEPARATOR):
        candidate = directory + "/" + cmd
        if os.path.exists(candidate):
            LOG.debug("resolved %s -> %s", cmd, candidate)
            return candidate
    return None


def is_directly_runnable(path: str) -> bool:
    """True if path can be stat'ed and has the owner execute bit."""
    try:
        st = os.stat(path)
    except (OSError, ValueError):
        return False
    return bool(st.st_mode & stat.S_IXUSR)


def check_executable(path: str) -> None:
    if not os.access(path, os.X_OK):
        raise PermissionDenied(path)


def exit_status(returncode: int) -> int:
    # Popen reports death by signal N as -N
    if returncode < 0:
        return 128 - returncode
    return returncode


def spawn_and_wait(path: str, argv: Sequence[str], env: Mapping[str, str], *,
                   shell_name: str = "hsh", stderr: Optional[TextIO] = None) -> int:
    """Run path with argv and env, block until it exits, return its status.

    A failure to replace the child's image is reported the way the child
    would report it and turned into 126/127. A failure to create the
    child at all raises ProcessCreationError."""
    stderr = stderr or sys.stderr
    exe = path if "/" in path else os.path.join(os.curdir, path)
    for stream in (sys.stdout, stderr):
        stream.flush()
    try:
        proc = subprocess.Popen(list(argv), executable=exe, env=dict(env))
    except OSError as e:
        if e.filename is None:
            raise ProcessCreationError(e.strerror or str(e)) from e
        # exec failed inside the child; subprocess has already reaped it
        print(f"{shell_name}: {path}: {e.strerror}", file=stderr)
        if e.errno == errno.ENOENT:
            return NOT_FOUND
        return NOT_EXEC
    except ValueError as e:
        # argv or env holds a NUL byte; nothing was started
        print(f"{shell_name}: {path}: {e}", file=stderr)
        return NOT_EXEC
    except MemoryError as e:
        raise ProcessCreationError("out of memory") from e

    LOG.debug("spawned pid %d for %s", proc.pid, path)
    while True:
        try:
            rc = proc.wait()
            break
        except KeyboardInterrupt:
            # the child got the same SIGINT; keep waiting so it is reaped
            continue
    LOG.debug("pid %d exited with %d", proc.pid, rc)
    return exit_status(rc)


def run_external(argv: Sequence[str], env: Mapping[str, str], *,
                 shell_name: str = "hsh", stderr: Optional[TextIO] = None) -> int:
    """Resolve argv[0] against PATH, check it can be executed, run it."""
    exe = resolve_executable(argv[0], env)
    if not exe:
        raise CommandNotFound(argv[0])
    check_executable(exe)
    return spawn_and_wait(exe, argv, env, shell_name=shell_name, stderr=stderr)
