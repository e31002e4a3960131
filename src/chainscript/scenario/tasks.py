"""Splitting a script into tasks.

A task starts at a ``//# verb args...`` line. Lines starting with ``//>`` add
programmable-transaction commands; every other line up to the next task is
the task's body (module sources for ``stage-package`` and ``publish``).
"""
from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from pathlib import Path

from chainscript.errors import ScriptError

TASK_PREFIX = "//#"
COMMAND_PREFIX = "//>"


@dataclass(slots=True)
class TaskInput:
    number: int
    verb: str
    arguments: list[str]
    start_line: int
    stop_line: int
    commands: list[tuple[int, str]] = field(default_factory=list)
    body: list[str] = field(default_factory=list)

    @property
    def header(self) -> str:
        return f"task {self.number} '{self.verb}'. lines {self.start_line}-{self.stop_line}:"

    def body_text(self) -> str:
        return "\n".join(self.body).strip("\n")


def _strip_quotes(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in {"'", '"'}:
        return token[1:-1]
    return token


def split_command(text: str, *, line: int | None = None) -> list[str]:
    """Split a task line on whitespace.

    Quotes inside a token are kept, so ``b"abc"`` survives intact; a fully
    quoted token such as ``'b"a b"'`` loses only its outer quotes.
    """
    lexer = shlex.shlex(text, posix=False)
    lexer.whitespace_split = True
    lexer.commenters = ""
    try:
        return [_strip_quotes(token) for token in lexer]
    except ValueError as exc:
        where = f" on line {line}" if line is not None else ""
        raise ScriptError(f"Malformed task command{where}: {exc}", text=text) from exc


def parse_tasks(source: str) -> list[TaskInput]:
    tasks: list[TaskInput] = []
    current: TaskInput | None = None
    for line_number, raw_line in enumerate(source.splitlines(), start=1):
        stripped = raw_line.strip()
        if stripped.startswith(TASK_PREFIX):
            tokens = split_command(stripped[len(TASK_PREFIX):], line=line_number)
            if not tokens:
                raise ScriptError(f"Missing task verb on line {line_number}", text=raw_line)
            current = TaskInput(
                number=len(tasks),
                verb=tokens[0],
                arguments=tokens[1:],
                start_line=line_number,
                stop_line=line_number,
            )
            tasks.append(current)
            continue
        if current is None:
            if stripped.startswith(COMMAND_PREFIX):
                raise ScriptError(f"Command line {line_number} appears before any task", text=raw_line)
            continue
        if stripped.startswith(COMMAND_PREFIX):
            current.commands.append((line_number, stripped[len(COMMAND_PREFIX):].strip()))
            current.stop_line = line_number
        else:
            current.body.append(raw_line)
            if stripped:
                current.stop_line = line_number
    return tasks


def read_tasks(path: Path) -> list[TaskInput]:
    return parse_tasks(path.read_text(encoding="utf-8"))


__all__ = ["COMMAND_PREFIX", "TASK_PREFIX", "TaskInput", "parse_tasks", "read_tasks", "split_command"]
