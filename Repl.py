#!/usr/bin/env python3
# Repl.py - read a line, find the program, run it, wait, repeat
import getpass
import glob
import logging
import os
import socket
import sys

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.completion import Completer, Completion

import argparser
from tokenizer import AllocationError, PATH_SEPARATOR, WHITESPACE, tokenize
from external_runner import (
    NOT_EXEC, NOT_FOUND, CommandNotFound, PermissionDenied, ProcessCreationError,
    is_directly_runnable, run_external, spawn_and_wait,
)

LOG = logging.getLogger("hsh.repl")

READ_ERROR = 2


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


class ShellCompleter(Completer):
    """Program names from PATH for the first word, file paths after it."""

    def __init__(self, env):
        self.env = env

    def _commands(self, prefix):
        seen = set()
        for directory in tokenize(self.env.get("PATH", ""), PATH_SEPARATOR):
            try:
                names = os.listdir(directory)
            except OSError:
                continue
            for name in names:
                if name.startswith(prefix) and name not in seen:
                    seen.add(name)
        return sorted(seen)

    def get_completions(self, document, complete_event):
        word_before_cursor = document.get_word_before_cursor(WORD=True)
        word_len = len(word_before_cursor)

        if document.text_before_cursor.strip() == word_before_cursor and "/" not in word_before_cursor:
            for name in self._commands(word_before_cursor):
                yield Completion(name, -word_len)
            return

        if word_before_cursor:
            for path in sorted(glob.glob(glob.escape(word_before_cursor) + "*")):
                display = path + os.sep if os.path.isdir(path) else path
                yield Completion(display, -word_len)


class Shell:
    def __init__(self, name="hsh", stdin=None, stdout=None, stderr=None,
                 env=None, session=None):
        self.name = name
        self.stdin = sys.stdin if stdin is None else stdin
        self.stdout = sys.stdout if stdout is None else stdout
        self.stderr = sys.stderr if stderr is None else stderr
        # None means "whatever os.environ holds at call time"
        self.env = env
        self.session = session
        self.count = 0

    def environment(self):
        return os.environ if self.env is None else self.env

    def interactive(self):
        try:
            return self.stdin.isatty()
        except ValueError:
            return False

    def prompt(self) -> str:
        try:
            user = getpass.getuser()
        except (KeyError, OSError):
            user = str(os.getuid())
        try:
            cwd = os.getcwd()
        except OSError:
            cwd = self.environment().get("PWD", "")
        return f"{user}@{socket.gethostname()}:{cwd}$ "

    def _session(self):
        if self.session is None:
            self.session = PromptSession(
                history=InMemoryHistory(),
                completer=ShellCompleter(self.environment()),
            )
        return self.session

    def read_line(self):
        """Return the next line without its newline, or None at end of input."""
        if self.interactive():
            try:
                return self._session().prompt(self.prompt())
            except EOFError:
                return None
            except KeyboardInterrupt:
                print(file=self.stdout)
                return ""
        line = self.stdin.readline()
        if not line:
            return None
        if line.endswith("\n"):
            line = line[:-1]
        return line

    def dispatch(self, argv) -> int:
        env = self.environment()
        try:
            if is_directly_runnable(argv[0]):
                return spawn_and_wait(argv[0], argv, env,
                                      shell_name=self.name, stderr=self.stderr)
            return run_external(argv, env, shell_name=self.name, stderr=self.stderr)
        except CommandNotFound as e:
            print(f"{self.name}: {e.cmd}: {self.count}: not found", file=self.stderr)
            return NOT_FOUND
        except PermissionDenied as e:
            print(f"{self.name}: {e.path}: Permission denied", file=self.stderr)
            return NOT_EXEC
        except ProcessCreationError as e:
            print(f"{self.name}: Can't fork: {e}", file=self.stderr)
            return 1

    def process_line(self, line):
        """Tokenize and dispatch one line. Returns None for blank lines."""
        try:
            argv = tokenize(line, WHITESPACE)
            if not argv:
                return None
            self.count += 1
            return self.dispatch(argv)
        except AllocationError as e:
            print(f"{self.name}: {e}", file=self.stderr)
            return 1

    def run(self) -> int:
        status = 0
        while True:
            try:
                line = self.read_line()
            except (OSError, UnicodeDecodeError) as e:
                print(f"{self.name}: read error: {e}", file=self.stderr)
                return READ_ERROR
            if line is None:
                break
            rc = self.process_line(line)
            if rc is not None:
                status = rc
                LOG.debug("command %d finished with status %d", self.count, rc)
        return status


# -----------------------
# Entry point
# -----------------------
def main(argv=None):
    parser = argparser.build_parser()
    args = parser.parse_args(argv)
    _configure_logging(os.environ.get("HSH_LOG_LEVEL", "WARNING"))
    name = sys.argv[0]

    if args.script:
        try:
            script = open(args.script, "r", encoding="utf-8", errors="surrogateescape")
        except OSError as e:
            print(f"{name}: {args.script}: {e.strerror}", file=sys.stderr)
            return NOT_FOUND
        with script:
            return Shell(name, stdin=script).run()

    if hasattr(sys.stdin, "reconfigure"):
        sys.stdin.reconfigure(errors="surrogateescape")
    return Shell(name).run()


if __name__ == "__main__":
    sys.exit(main())
