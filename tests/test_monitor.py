import io
import tempfile
import unittest
from pathlib import Path


def _make_session(root: Path, n: int = 3):
    from agentmux.contracts.v1 import AgentDefinition, SessionConfig, SessionMeta
    from agentmux.kernel.handle import SessionHandle
    from agentmux.kernel.layout import pack
    from agentmux.kernel.store import create_session

    config = SessionConfig(agents=[AgentDefinition(id=i, name=f"A{i}", role=f"role {i}") for i in range(1, n + 1)])
    handle = SessionHandle(name="s1", root=root)
    create_session(handle, SessionMeta(name="s1", config="team", target_repo=str(root), agent_count=n), config, pack(n))
    return handle


class TestMonitor(unittest.TestCase):
    def test_render_table(self) -> None:
        from agentmux.contracts.v1 import AgentDefinition, AgentState, AgentStatus, SessionConfig, SessionMeta
        from agentmux.ports.monitor import render

        meta = SessionMeta(name="s1", config="team", target_repo="/r", agent_count=2)
        config = SessionConfig(agents=[AgentDefinition(id=1, name="PLAT", role="Platform"), AgentDefinition(id=2, name="API")])
        states = [
            AgentState(agent_id=2, agent_name="API", status=AgentStatus.BLOCKED, last_active="t", current_task="waiting"),
            AgentState(agent_id=1, agent_name="PLAT"),
        ]
        lines = render(meta, states, config, now="NOW").splitlines()
        self.assertEqual(lines[0], "agentmux monitor | session s1 | 2 agents | NOW")
        self.assertIn("ACTIVITY", lines[2])
        self.assertIn("PLAT", lines[3])
        self.assertIn("⏳ pending", lines[3])
        self.assertIn("Platform", lines[3])
        self.assertIn("never", lines[3])
        self.assertIn("🚧 blocked", lines[4])
        self.assertIn("active", lines[4])
        self.assertTrue(lines[4].endswith("waiting"))
        self.assertEqual(len(lines), 5)

    def test_unreadable_row_is_skipped(self) -> None:
        from agentmux.ports.monitor import Monitor

        with tempfile.TemporaryDirectory() as td:
            handle = _make_session(Path(td))
            handle.state_path(2).write_text("garbage", encoding="utf-8")
            frame = Monitor(handle).frame()
            self.assertIn("A1", frame)
            self.assertNotIn("A2", frame)
            self.assertIn("A3", frame)
            self.assertIn("(1 agent(s) unreadable this tick)", frame)

    def test_run_bounded_ticks(self) -> None:
        from agentmux.ports.monitor import Monitor

        with tempfile.TemporaryDirectory() as td:
            handle = _make_session(Path(td))
            sleeps = []
            out = io.StringIO()
            mon = Monitor(handle, interval=2.5, out=out, sleep=sleeps.append)
            self.assertEqual(mon.run(max_ticks=3), 0)
            self.assertEqual(sleeps, [2.5, 2.5])
            self.assertEqual(out.getvalue().count("agentmux monitor | session s1"), 3)
            self.assertNotIn("\033[2J", out.getvalue())

    def test_interrupt_ends_loop(self) -> None:
        from agentmux.ports.monitor import Monitor

        def _interrupt(_: float) -> None:
            raise KeyboardInterrupt

        with tempfile.TemporaryDirectory() as td:
            handle = _make_session(Path(td))
            out = io.StringIO()
            self.assertEqual(Monitor(handle, out=out, sleep=_interrupt).run(), 0)
            self.assertEqual(out.getvalue().count("agentmux monitor"), 1)

    def test_missing_session_raises(self) -> None:
        from agentmux.errors import NotFound
        from agentmux.kernel.handle import SessionHandle
        from agentmux.ports.monitor import Monitor

        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(NotFound):
                Monitor(SessionHandle(name="ghost", root=Path(td)), out=io.StringIO()).run(max_ticks=1)


if __name__ == "__main__":
    unittest.main()
