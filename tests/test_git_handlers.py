"""Tests for the git tool handlers against real repositories."""

import json
import shutil
from pathlib import Path

import pytest
from git import Repo

from conduit.config import Settings
from conduit.dispatch import Dispatcher, Failure, Success
from conduit.errors import ErrorKind
from conduit.git_handlers import parse_porcelain_status
from conduit.server import build_git_dispatcher

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not found")


def _make_repo(path: Path) -> Repo:
    repo = Repo.init(path)
    with repo.config_writer() as config:
        config.set_value("user", "name", "Test User")
        config.set_value("user", "email", "test@example.com")
        config.set_value("commit", "gpgsign", "false")
    return repo


def _commit(repo: Repo, name: str, content: str, message: str) -> None:
    Path(repo.working_tree_dir, name).write_text(content)
    repo.git.add(name)
    repo.git.commit("-m", message)


@pytest.fixture
def git(settings: Settings) -> Dispatcher:
    return build_git_dispatcher(settings)


@pytest.fixture
def repo(tmp_path: Path) -> Repo:
    repo = _make_repo(tmp_path / "repo")
    _commit(repo, "README.md", "hello\n", "Initial commit")
    return repo


async def _ok(dispatcher: Dispatcher, name: str, **arguments: object) -> str:
    response = await dispatcher.handle(name, arguments)
    assert isinstance(response, Success), response
    return response.text


class TestParsePorcelainStatus:
    def test_branch_header_with_tracking(self):
        status = parse_porcelain_status("## main...origin/main [ahead 2, behind 1]\n")

        assert status["current"] == "main"
        assert status["tracking"] == "origin/main"
        assert (status["ahead"], status["behind"]) == (2, 1)

    def test_unborn_branch(self):
        status = parse_porcelain_status("## No commits yet on main\n?? new.txt\n")

        assert status["current"] == "main"
        assert status["tracking"] is None
        assert status["not_added"] == ["new.txt"]

    def test_file_buckets(self):
        output = "\n".join(
            [
                "## feature",
                "M  staged.py",
                " M unstaged.py",
                "MM both.py",
                "A  added.py",
                " D gone.py",
                "R  old.py -> new.py",
                "UU conflict.py",
            ]
        )

        status = parse_porcelain_status(output)

        assert status["staged"] == ["staged.py", "both.py", "added.py", "new.py"]
        assert status["modified"] == ["staged.py", "unstaged.py", "both.py"]
        assert status["created"] == ["added.py"]
        assert status["deleted"] == ["gone.py"]
        assert status["renamed"] == [{"from": "old.py", "to": "new.py"}]
        assert status["conflicted"] == ["conflict.py"]

    def test_detached_head(self):
        status = parse_porcelain_status("## HEAD (no branch)\n")

        assert status["current"] is None


class TestOptionInjection:
    """Values that git would read as options never reach the command line."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("tool_name", "field"),
        [
            ("git_create_branch", "branchName"),
            ("git_checkout", "branchName"),
            ("git_push", "remote"),
            ("git_push", "branch"),
            ("git_pull", "remote"),
            ("git_pull", "branch"),
        ],
    )
    async def test_option_values_rejected_before_git_runs(
        self, git: Dispatcher, tmp_path: Path, tool_name: str, field: str
    ):
        marker = tmp_path / "injected"
        arguments = {
            "repoPath": str(tmp_path / "missing"),
            "branchName": "main",
            field: f"--upload-pack=touch {marker}; git-upload-pack",
        }

        response = await git.handle(tool_name, arguments)

        assert isinstance(response, Failure)
        assert response.kind is ErrorKind.INVALID_PARAMS
        assert response.message.startswith(f"{field} must not start with '-'")
        assert not marker.exists()


@requires_git
class TestRepositoryTools:
    @pytest.mark.asyncio
    async def test_invalid_repository_path(self, git: Dispatcher, tmp_path: Path):
        plain = tmp_path / "plain"
        plain.mkdir()

        response = await git.handle("git_status", {"repoPath": str(plain)})

        assert response == Failure(ErrorKind.INVALID_PARAMS, f"Invalid repository path: {plain}")

    @pytest.mark.asyncio
    async def test_status_reports_untracked_and_modified(self, git: Dispatcher, repo: Repo):
        root = Path(repo.working_tree_dir)
        (root / "README.md").write_text("changed\n")
        (root / "notes.txt").write_text("new\n")

        status = json.loads(await _ok(git, "git_status", repoPath=str(root)))

        assert status["current"] == repo.active_branch.name
        assert status["modified"] == ["README.md"]
        assert status["not_added"] == ["notes.txt"]
        assert status["staged"] == []

    @pytest.mark.asyncio
    async def test_log_respects_max_count(self, git: Dispatcher, repo: Repo):
        _commit(repo, "a.txt", "a\n", "Add a")
        _commit(repo, "b.txt", "b\n", "Add b")

        entries = json.loads(await _ok(git, "git_log", repoPath=repo.working_tree_dir, maxCount=2))

        assert [entry["message"] for entry in entries] == ["Add b", "Add a"]
        assert entries[0]["hash"] == repo.head.commit.hexsha
        assert entries[0]["author_name"] == "Test User"
        assert entries[0]["author_email"] == "test@example.com"

    @pytest.mark.asyncio
    async def test_create_branch_checkout_and_list(self, git: Dispatcher, repo: Repo):
        path = repo.working_tree_dir
        original = repo.active_branch.name

        created = await _ok(git, "git_create_branch", repoPath=path, branchName="feature")
        branches = json.loads(await _ok(git, "git_branches", repoPath=path))
        switched = await _ok(git, "git_checkout", repoPath=path, branchName=original)

        assert created == "Created and switched to branch: feature"
        assert branches["current"] == "feature"
        assert sorted(branches["all"]) == sorted([original, "feature"])
        assert branches["branches"]["feature"]["current"] is True
        assert branches["branches"]["feature"]["label"] == "Initial commit"
        assert len(branches["branches"]["feature"]["commit"]) == 7
        assert switched == f"Switched to branch: {original}"
        assert repo.active_branch.name == original

    @pytest.mark.asyncio
    async def test_add_then_commit(self, git: Dispatcher, repo: Repo):
        root = Path(repo.working_tree_dir)
        (root / "one.txt").write_text("1\n")
        (root / "two.txt").write_text("2\n")

        added = await _ok(git, "git_add", repoPath=str(root), files=["one.txt", "two.txt"])
        committed = await _ok(git, "git_commit", repoPath=str(root), message="Add numbers")

        assert added == "Added files: one.txt, two.txt"
        assert committed == f"Committed: {repo.head.commit.hexsha[:7]} - Add numbers"
        assert repo.head.commit.message.strip() == "Add numbers"
        assert not repo.is_dirty(untracked_files=True)

    @pytest.mark.asyncio
    async def test_add_treats_dashed_names_as_paths(self, git: Dispatcher, repo: Repo):
        root = Path(repo.working_tree_dir)
        (root / "untracked.txt").write_text("x\n")

        response = await git.handle("git_add", {"repoPath": str(root), "files": ["--all"]})

        assert isinstance(response, Failure)
        assert response.kind is ErrorKind.INTERNAL_ERROR
        assert "untracked.txt" not in repo.git.diff("--cached", "--name-only")

    @pytest.mark.asyncio
    async def test_commit_stages_listed_files(self, git: Dispatcher, repo: Repo):
        root = Path(repo.working_tree_dir)
        (root / "README.md").write_text("updated\n")

        await _ok(git, "git_commit", repoPath=str(root), message="Update", files=["README.md"])

        assert repo.head.commit.message.strip() == "Update"

    @pytest.mark.asyncio
    async def test_commit_with_nothing_staged_fails(self, git: Dispatcher, repo: Repo):
        response = await git.handle(
            "git_commit", {"repoPath": repo.working_tree_dir, "message": "Empty"}
        )

        assert isinstance(response, Failure)
        assert response.kind is ErrorKind.INTERNAL_ERROR
        assert response.message.startswith("Git operation failed: ")

    @pytest.mark.asyncio
    async def test_diff_working_tree_and_staged(self, git: Dispatcher, repo: Repo):
        root = Path(repo.working_tree_dir)
        (root / "README.md").write_text("goodbye\n")

        unstaged = await _ok(git, "git_diff", repoPath=str(root))
        staged = await _ok(git, "git_diff", repoPath=str(root), staged=True)
        repo.git.add("README.md")
        staged_after_add = await _ok(git, "git_diff", repoPath=str(root), staged=True)

        assert "-hello" in unstaged and "+goodbye" in unstaged
        assert staged == "No differences found"
        assert "+goodbye" in staged_after_add

    @pytest.mark.asyncio
    async def test_diff_limited_to_file(self, git: Dispatcher, repo: Repo):
        root = Path(repo.working_tree_dir)
        _commit(repo, "other.txt", "x\n", "Add other")
        (root / "README.md").write_text("changed\n")
        (root / "other.txt").write_text("y\n")

        diff = await _ok(git, "git_diff", repoPath=str(root), file="other.txt")

        assert "other.txt" in diff
        assert "README.md" not in diff

    @pytest.mark.asyncio
    async def test_init_creates_directories(self, git: Dispatcher, tmp_path: Path):
        target = tmp_path / "new" / "nested"

        message = await _ok(git, "git_init", repoPath=str(target))

        assert message == f"Initialized git repository at {target.resolve()}"
        assert (target / ".git").is_dir()


@requires_git
class TestRemoteTools:
    @pytest.mark.asyncio
    async def test_clone_local_repository(self, git: Dispatcher, repo: Repo, tmp_path: Path):
        target = tmp_path / "clone"
        url = Path(repo.working_tree_dir).as_uri()

        message = await _ok(git, "git_clone", repoUrl=url, targetPath=str(target))

        assert message == f"Cloned repository to {target}"
        assert (target / "README.md").read_text() == "hello\n"

    @pytest.mark.asyncio
    async def test_clone_into_non_empty_directory(
        self, git: Dispatcher, repo: Repo, tmp_path: Path
    ):
        target = tmp_path / "occupied"
        target.mkdir()
        (target / "keep.txt").write_text("mine\n")

        response = await git.handle(
            "git_clone",
            {"repoUrl": Path(repo.working_tree_dir).as_uri(), "targetPath": str(target)},
        )

        assert response == Failure(
            ErrorKind.INVALID_PARAMS, f"Target directory {target} is not empty"
        )
        assert [p.name for p in target.iterdir()] == ["keep.txt"]

    @pytest.mark.asyncio
    async def test_push_and_pull_through_bare_remote(
        self, git: Dispatcher, repo: Repo, tmp_path: Path
    ):
        bare = Repo.init(tmp_path / "remote.git", bare=True)
        repo.create_remote("origin", bare.working_dir)
        branch = repo.active_branch.name
        path = repo.working_tree_dir

        pushed = await _ok(git, "git_push", repoPath=path, branch=branch)
        pulled = await _ok(git, "git_pull", repoPath=path, branch=branch)

        assert pushed == f"Pushed to origin/{branch}"
        assert pulled == f"Pulled from origin/{branch}"
        assert bare.heads[branch].commit.hexsha == repo.head.commit.hexsha

    @pytest.mark.asyncio
    async def test_push_without_remote_is_internal_error(self, git: Dispatcher, repo: Repo):
        response = await git.handle("git_push", {"repoPath": repo.working_tree_dir})

        assert isinstance(response, Failure)
        assert response.kind is ErrorKind.INTERNAL_ERROR
        assert response.message.startswith("Git operation failed: ")
