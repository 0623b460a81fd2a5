"""Git tool handlers backed by GitPython."""

from __future__ import annotations

import asyncio
import functools
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from git import Repo

from conduit.dispatch import Handler, ToolCall
from conduit.errors import invalid_params

logger = logging.getLogger("conduit.git")

# Porcelain v1 XY pairs that mean an unmerged path.
_CONFLICT_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}


def _open_repo(repo_path: str) -> Repo:
    resolved = Path(repo_path).expanduser().resolve()
    if not resolved.is_dir() or not (resolved / ".git").exists():
        raise invalid_params(f"Invalid repository path: {repo_path}")
    return Repo(resolved)


def _ref_suffix(remote: str, branch: str | None) -> str:
    return f"{remote}/{branch}" if branch else remote


def _parse_branch_header(header: str, status: dict[str, Any]) -> None:
    # "## main...origin/main [ahead 1, behind 2]", "## No commits yet on main",
    # "## HEAD (no branch)"
    header = header[3:]
    if header.startswith("No commits yet on "):
        status["current"] = header[len("No commits yet on ") :]
        return
    if header.startswith("HEAD (no branch)"):
        return
    counts = ""
    if " [" in header:
        header, counts = header.split(" [", 1)
    local, _sep, tracking = header.partition("...")
    status["current"] = local
    status["tracking"] = tracking or None
    for part in counts.rstrip("]").split(","):
        label, _space, number = part.strip().partition(" ")
        if label in ("ahead", "behind") and number.isdigit():
            status[label] = int(number)


def parse_porcelain_status(output: str) -> dict[str, Any]:
    """Parse ``git status --porcelain=v1 --branch`` output into buckets."""
    status: dict[str, Any] = {
        "current": None,
        "tracking": None,
        "ahead": 0,
        "behind": 0,
        "staged": [],
        "created": [],
        "modified": [],
        "not_added": [],
        "deleted": [],
        "renamed": [],
        "conflicted": [],
    }
    for line in output.splitlines():
        if line.startswith("## "):
            _parse_branch_header(line, status)
            continue
        if len(line) < 4:
            continue
        code, path = line[:2], line[3:]
        index = code[0]
        if code == "??":
            status["not_added"].append(path)
            continue
        if code in _CONFLICT_CODES:
            status["conflicted"].append(path)
            continue
        if index == "R":
            source, _arrow, target = path.partition(" -> ")
            status["renamed"].append({"from": source, "to": target})
            path = target
        if index in "MADRC":
            status["staged"].append(path)
        if index == "A":
            status["created"].append(path)
        if "M" in code:
            status["modified"].append(path)
        if "D" in code:
            status["deleted"].append(path)
    return status


def git_status(args: dict[str, Any]) -> dict[str, Any]:
    repo = _open_repo(args["repoPath"])
    return parse_porcelain_status(repo.git.status("--porcelain=v1", "--branch"))


def git_log(args: dict[str, Any]) -> list[dict[str, Any]]:
    repo = _open_repo(args["repoPath"])
    return [
        {
            "hash": commit.hexsha,
            "date": commit.committed_datetime.isoformat(),
            "message": commit.message.strip(),
            "author_name": commit.author.name,
            "author_email": commit.author.email,
        }
        for commit in repo.iter_commits(max_count=args["maxCount"])
    ]


def git_branches(args: dict[str, Any]) -> dict[str, Any]:
    repo = _open_repo(args["repoPath"])
    current = None if repo.head.is_detached else repo.active_branch.name
    branches = {}
    for head in repo.heads:
        commit = head.commit
        branches[head.name] = {
            "current": head.name == current,
            "name": head.name,
            "commit": commit.hexsha[:7],
            "label": commit.summary,
        }
    return {"current": current, "all": list(branches), "branches": branches}


def git_create_branch(args: dict[str, Any]) -> str:
    repo = _open_repo(args["repoPath"])
    repo.git.checkout("-b", args["branchName"])
    return f"Created and switched to branch: {args['branchName']}"


def git_checkout(args: dict[str, Any]) -> str:
    repo = _open_repo(args["repoPath"])
    repo.git.checkout(args["branchName"])
    return f"Switched to branch: {args['branchName']}"


def git_add(args: dict[str, Any]) -> str:
    repo = _open_repo(args["repoPath"])
    repo.git.add("--", *args["files"])
    return f"Added files: {', '.join(args['files'])}"


def git_commit(args: dict[str, Any]) -> str:
    repo = _open_repo(args["repoPath"])
    if args["files"]:
        repo.git.add("--", *args["files"])
    repo.git.commit("-m", args["message"])
    return f"Committed: {repo.head.commit.hexsha[:7]} - {args['message']}"


def git_push(args: dict[str, Any]) -> str:
    repo = _open_repo(args["repoPath"])
    refs = [args["branch"]] if args["branch"] else []
    repo.git.push(args["remote"], *refs)
    return f"Pushed to {_ref_suffix(args['remote'], args['branch'])}"


def git_pull(args: dict[str, Any]) -> str:
    repo = _open_repo(args["repoPath"])
    refs = [args["branch"]] if args["branch"] else []
    repo.git.pull(args["remote"], *refs)
    return f"Pulled from {_ref_suffix(args['remote'], args['branch'])}"


def git_clone(args: dict[str, Any]) -> str:
    target = Path(args["targetPath"]).expanduser()
    if target.exists():
        if not target.is_dir():
            raise invalid_params(f"Target path {args['targetPath']} is not a directory")
        if any(target.iterdir()):
            raise invalid_params(f"Target directory {args['targetPath']} is not empty")
    options: dict[str, Any] = {"branch": args["branch"]} if args["branch"] else {}
    Repo.clone_from(args["repoUrl"], os.fspath(target), **options)
    return f"Cloned repository to {args['targetPath']}"


def git_diff(args: dict[str, Any]) -> str:
    repo = _open_repo(args["repoPath"])
    diff_args = ["--cached"] if args["staged"] else []
    if args["file"]:
        diff_args.extend(["--", args["file"]])
    diff = repo.git.diff(*diff_args)
    return diff or "No differences found"


def git_init(args: dict[str, Any]) -> str:
    resolved = Path(args["repoPath"]).expanduser().resolve()
    resolved.mkdir(parents=True, exist_ok=True)
    Repo.init(resolved)
    return f"Initialized git repository at {resolved}"


def _offload(fn: Callable[[dict[str, Any]], Any]) -> Handler:
    """Wrap a blocking git call so it runs in the default executor."""

    @functools.wraps(fn)
    async def handler(call: ToolCall) -> Any:
        loop = asyncio.get_running_loop()
        logger.debug("Running %s (request %s)", call.name, call.request_id)
        return await loop.run_in_executor(None, fn, call.arguments)

    return handler


def build_git_handlers() -> dict[str, Handler]:
    """Map each git tool name to its handler."""
    operations = (
        git_status,
        git_log,
        git_branches,
        git_create_branch,
        git_checkout,
        git_add,
        git_commit,
        git_push,
        git_pull,
        git_clone,
        git_diff,
        git_init,
    )
    return {fn.__name__: _offload(fn) for fn in operations}


__all__ = ["build_git_handlers", "parse_porcelain_status"]
