import os
import shutil
import subprocess
import tempfile
import unittest
from pathlib import Path


def _write_config(root: Path, name: str, n: int, *, branches=None) -> None:
    branches = branches or {}
    lines = [f"description: {n} agents", "agents:"]
    for i in range(1, n + 1):
        lines.append(f"  - id: {i}")
        lines.append(f"    name: A{i}")
        lines.append(f"    role: role {i}")
        if i > 1:
            lines.append(f"    depends_on: [{i - 1}]")
        if i in branches:
            lines.append(f"    branch: {branches[i]}")
    (root / "configs").mkdir(parents=True, exist_ok=True)
    (root / "configs" / f"{name}.yaml").write_text("\n".join(lines) + "\n", encoding="utf-8")


def _git(repo: Path, *args: str) -> str:
    p = subprocess.run(
        ["git", "-c", "user.name=t", "-c", "user.email=t@example.com", *args],
        cwd=str(repo),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        check=True,
    )
    return p.stdout.strip()


class TestSessionInitializer(unittest.TestCase):
    def _layout(self, td: str):
        from agentmux.kernel.handle import SessionHandle

        root = Path(td) / "tool"
        repo = Path(td) / "repo"
        repo.mkdir()
        (repo / "README.md").write_text("hello\n", encoding="utf-8")
        return root, repo, SessionHandle(name="s1", root=root / "sessions")

    def test_shared_repository_for_eight_agents(self) -> None:
        from agentmux.contracts.v1 import AgentStatus
        from agentmux.kernel.initializer import initialize
        from agentmux.kernel.store import list_agent_states, load_session, read_layout

        with tempfile.TemporaryDirectory() as td:
            root, repo, handle = self._layout(td)
            _write_config(root, "big", 8, branches={3: "agent-3-sec"})
            meta = initialize(handle, "big", repo, False, tool_root=root)

            self.assertEqual(meta.agent_count, 8)
            self.assertEqual(load_session(handle).config, "big")
            for i in range(1, 9):
                self.assertEqual(os.path.realpath(handle.workdir_path(i)), os.path.realpath(repo))

            states = list_agent_states(handle)
            self.assertEqual(len(states), 8)
            self.assertTrue(all(s.status == AgentStatus.PENDING for s in states))

            layout = read_layout(handle)
            self.assertEqual([t.name for t in layout.tabs], ["Orchestrator", "Agents-1", "Agents-2", "Monitor"])
            self.assertIn('tab name="Agents-2"', handle.layout_kdl_path.read_text(encoding="utf-8"))

    def test_instructions_rendered_per_agent(self) -> None:
        from agentmux.kernel.initializer import initialize

        with tempfile.TemporaryDirectory() as td:
            root, repo, handle = self._layout(td)
            _write_config(root, "team", 3)
            initialize(handle, "team", repo, False, tool_root=root)

            text = handle.instructions_path(2).read_text(encoding="utf-8")
            self.assertIn("# Agent 2: A2", text)
            self.assertIn("**Role:** role 2", text)
            self.assertIn(str(handle.mailbox_path(2)), text)
            self.assertIn("You depend on: A1 (agent 1)", text)

            first = handle.instructions_path(1).read_text(encoding="utf-8")
            self.assertIn("no upstream dependencies", first)

    def test_generic_template_is_packaged(self) -> None:
        from agentmux.kernel.instructions import load_generic_template

        text = load_generic_template()
        self.assertIn("{{ agent_id }}", text)
        self.assertIn("check_queries", text)

    def test_role_template_overrides_generic(self) -> None:
        from agentmux.kernel.initializer import initialize

        with tempfile.TemporaryDirectory() as td:
            root, repo, handle = self._layout(td)
            _write_config(root, "team", 2)
            (root / "templates").mkdir()
            (root / "templates" / "a2.md").write_text("Custom brief for {{ agent_name }} in {{ session_name }}\n", encoding="utf-8")
            initialize(handle, "team", repo, False, tool_root=root)
            self.assertEqual(handle.instructions_path(2).read_text(encoding="utf-8"), "Custom brief for A2 in s1\n")
            self.assertIn("# Agent 1: A1", handle.instructions_path(1).read_text(encoding="utf-8"))

    def test_second_initialize_is_rejected(self) -> None:
        from agentmux.errors import AlreadyExists
        from agentmux.kernel.initializer import initialize

        with tempfile.TemporaryDirectory() as td:
            root, repo, handle = self._layout(td)
            _write_config(root, "team", 2)
            initialize(handle, "team", repo, False, tool_root=root)
            before = handle.meta_path.read_bytes()
            states_before = sorted(p.name for p in (handle.path / "state").iterdir())

            with self.assertRaises(AlreadyExists):
                initialize(handle, "team", repo, False, tool_root=root)

            self.assertEqual(handle.meta_path.read_bytes(), before)
            self.assertEqual(sorted(p.name for p in (handle.path / "state").iterdir()), states_before)
            self.assertTrue(handle.instructions_path(1).is_file())

    def test_missing_inputs_leave_nothing_behind(self) -> None:
        from agentmux.errors import ConfigNotFound, NotFound
        from agentmux.kernel.initializer import initialize

        with tempfile.TemporaryDirectory() as td:
            root, repo, handle = self._layout(td)
            with self.assertRaises(ConfigNotFound):
                initialize(handle, "absent", repo, False, tool_root=root)
            self.assertFalse(handle.path.exists())

            _write_config(root, "team", 2)
            with self.assertRaises(NotFound):
                initialize(handle, "team", Path(td) / "no-repo", False, tool_root=root)
            self.assertFalse(handle.path.exists())

    def test_failure_after_claim_removes_session(self) -> None:
        from agentmux.errors import ConfigError
        from agentmux.kernel.initializer import initialize

        with tempfile.TemporaryDirectory() as td:
            root, repo, handle = self._layout(td)
            _write_config(root, "team", 2)
            (root / "templates").mkdir()
            (root / "templates" / "a2.md").write_text("{{ no_such_key }}\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                initialize(handle, "team", repo, False, tool_root=root)
            self.assertFalse(handle.path.exists())
            self.assertTrue((repo / "README.md").is_file())

    def test_teardown_keeps_shared_repository(self) -> None:
        from agentmux.kernel.initializer import initialize, teardown

        with tempfile.TemporaryDirectory() as td:
            root, repo, handle = self._layout(td)
            _write_config(root, "team", 2)
            initialize(handle, "team", repo, False, tool_root=root)
            teardown(handle)
            self.assertFalse(handle.path.exists())
            self.assertEqual((repo / "README.md").read_text(encoding="utf-8"), "hello\n")

    @unittest.skipIf(shutil.which("git") is None, "git not available")
    def test_worktree_for_branch_agent(self) -> None:
        from agentmux.kernel.initializer import initialize, teardown

        with tempfile.TemporaryDirectory() as td:
            root, repo, handle = self._layout(td)
            _git(repo, "init", "-q")
            _git(repo, "add", "README.md")
            _git(repo, "commit", "-q", "-m", "init")
            _write_config(root, "team", 8, branches={3: "agent-3-sec"})

            initialize(handle, "team", repo, True, tool_root=root)

            wt = handle.workdir_path(3)
            self.assertTrue(wt.is_dir())
            self.assertFalse(wt.is_symlink())
            self.assertEqual(_git(wt, "rev-parse", "--abbrev-ref", "HEAD"), "agent-3-sec")
            self.assertTrue((wt / "README.md").is_file())
            shared = [i for i in range(1, 9) if i != 3]
            for i in shared:
                self.assertTrue(handle.workdir_path(i).is_symlink())
                self.assertEqual(os.path.realpath(handle.workdir_path(i)), os.path.realpath(repo))

            # A change in the isolated checkout stays out of the shared one.
            (wt / "SECURITY_NOTES.md").write_text("audit in progress\n", encoding="utf-8")
            self.assertFalse((repo / "SECURITY_NOTES.md").exists())
            for i in shared:
                self.assertFalse((handle.workdir_path(i) / "SECURITY_NOTES.md").exists())
            (handle.workdir_path(1) / "shared.txt").write_text("x\n", encoding="utf-8")
            self.assertTrue((repo / "shared.txt").is_file())
            self.assertFalse((wt / "shared.txt").exists())

            teardown(handle)
            self.assertFalse(handle.path.exists())
            self.assertNotIn(str(wt), _git(repo, "worktree", "list"))
            self.assertIn("agent-3-sec", _git(repo, "branch", "--list", "agent-3-sec"))

    @unittest.skipIf(shutil.which("git") is None, "git not available")
    def test_worktree_failure_falls_back_to_shared(self) -> None:
        from agentmux.kernel.initializer import initialize

        with tempfile.TemporaryDirectory() as td:
            root, repo, handle = self._layout(td)
            # Not a git repository: `git worktree add` fails for every agent.
            _write_config(root, "team", 2, branches={1: "agent-1", 2: "agent-2"})
            initialize(handle, "team", repo, True, tool_root=root)
            for i in (1, 2):
                self.assertTrue(handle.workdir_path(i).is_symlink())


if __name__ == "__main__":
    unittest.main()
