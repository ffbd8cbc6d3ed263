import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

_CONFIG = """
agents:
  - {id: 1, name: PLAT, role: Platform}
  - {id: 2, name: API, role: Backend, depends_on: [1]}
"""


def _run(argv):
    from agentmux.cli import main

    buf = io.StringIO()
    with redirect_stdout(buf):
        code = main(argv)
    return code, buf.getvalue()


class TestCli(unittest.TestCase):
    def test_layout_and_version(self) -> None:
        from agentmux import __version__

        code, out = _run(["layout", "5"])
        self.assertEqual(code, 0)
        self.assertIn("Agents-2: agentmux run 5", out)

        code, out = _run(["layout", "2", "--kdl"])
        self.assertEqual(code, 0)
        self.assertTrue(out.startswith("layout {"))

        code, out = _run(["layout", "-1"])
        self.assertEqual(code, 1)
        self.assertEqual(json.loads(out)["error"]["code"], "invalid_argument")

        code, out = _run(["version"])
        self.assertEqual(out.strip(), __version__)

    def test_session_lifecycle(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td) / "tool"
            (root / "configs").mkdir(parents=True)
            (root / "configs" / "team.yaml").write_text(_CONFIG, encoding="utf-8")
            repo = Path(td) / "repo"
            repo.mkdir()

            env = {"AGENTMUX_ROOT": str(root), "AGENTMUX_HOME": str(Path(td) / "sessions"), "AGENTMUX_SESSION_DIR": ""}
            with patch.dict(os.environ, env):
                code, out = _run(["configs"])
                self.assertEqual(json.loads(out)["result"]["configs"], ["team"])

                code, out = _run(["init", "team", "demo", "--repo", str(repo)])
                self.assertEqual(code, 0, out)
                result = json.loads(out)["result"]
                self.assertEqual(result["agent_count"], 2)
                self.assertIn("zellij --layout", result["launch"])

                code, out = _run(["init", "team", "demo", "--repo", str(repo)])
                self.assertEqual(code, 1)
                self.assertEqual(json.loads(out)["error"]["code"], "already_exists")

                code, out = _run(["sessions"])
                self.assertEqual(json.loads(out)["result"]["sessions"], ["demo"])

                code, out = _run(["send", "api", "start on the schema", "--session", "demo", "--priority", "high"])
                self.assertEqual(code, 0, out)
                self.assertEqual(json.loads(out)["result"]["recipient"], 2)

                code, out = _run(["status", "--session", "demo"])
                agents = json.loads(out)["result"]["agents"]
                self.assertEqual([a["agentId"] for a in agents], [1, 2])
                self.assertEqual(agents[1]["role"], "Backend")
                self.assertTrue(agents[1]["pendingMessage"])
                self.assertFalse(agents[0]["pendingMessage"])

                code, out = _run(["check", "--agent", "2", "--session", "demo"])
                self.assertEqual(json.loads(out)["result"]["body"], "start on the schema")
                code, out = _run(["check", "--agent", "2", "--session", "demo"])
                self.assertIsNone(json.loads(out)["result"])

                code, out = _run(["send", "nobody", "hi", "--session", "demo"])
                self.assertEqual(code, 1)
                self.assertEqual(json.loads(out)["error"]["code"], "recipient_not_found")

                code, out = _run(["layout", "--session", "demo"])
                self.assertIn("Agents: agentmux run 1 | agentmux run 2", out)

                code, out = _run(["teardown", "demo"])
                self.assertEqual(code, 0, out)
                self.assertFalse((Path(td) / "sessions" / "demo").exists())

    def test_session_required(self) -> None:
        with patch.dict(os.environ, {"AGENTMUX_SESSION_DIR": ""}):
            code, out = _run(["status"])
        self.assertEqual(code, 1)
        self.assertEqual(json.loads(out)["error"]["code"], "invalid_argument")

    def test_run_precondition_exit_code(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with patch.dict(os.environ, {"AGENTMUX_HOME": td, "AGENTMUX_SESSION_DIR": ""}):
                with patch("sys.stderr", new_callable=io.StringIO) as err:
                    code, _ = _run(["run", "1", "--session", "ghost"])
        self.assertEqual(code, 2)
        self.assertIn("session not found", err.getvalue())


if __name__ == "__main__":
    unittest.main()
