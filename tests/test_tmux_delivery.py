import os
import unittest
from unittest.mock import patch


class TestTmuxDelivery(unittest.TestCase):
    def test_current_pane(self) -> None:
        from agentmux.runners.tmux import current_pane

        with patch.dict(os.environ, {"TMUX": "", "TMUX_PANE": "%3"}):
            self.assertIsNone(current_pane())
        with patch.dict(os.environ, {"TMUX": "/tmp/tmux-0/default,1,0", "TMUX_PANE": "%3"}):
            self.assertEqual(current_pane(), "%3")

    def test_paste_text_uses_named_buffer(self) -> None:
        from agentmux.runners import tmux

        calls = []

        def _fake(args, *, timeout_s=3.0):
            calls.append(list(args))
            if args[0] == "display-message":
                return 0, "1\n", ""
            return 0, "", ""

        with patch.object(tmux, "_run_tmux", side_effect=_fake), patch.object(tmux.time, "sleep"):
            self.assertTrue(tmux.paste_text("%3", "read your instructions", post_keys=["Enter"]))

        verbs = [c[0] for c in calls]
        self.assertEqual(verbs, ["display-message", "send-keys", "load-buffer", "paste-buffer", "send-keys", "delete-buffer"])
        self.assertEqual(calls[-2], ["send-keys", "-t", "%3", "Enter"])
        self.assertTrue(calls[2][2].startswith("agentmux-"))
        self.assertFalse(os.path.exists(calls[2][3]))

    def test_paste_text_reports_failure(self) -> None:
        from agentmux.runners import tmux

        def _fake(args, *, timeout_s=3.0):
            if args[0] == "load-buffer":
                return 1, "", "no server"
            return 0, "", ""

        with patch.object(tmux, "_run_tmux", side_effect=_fake):
            self.assertFalse(tmux.paste_text("%3", "hi"))


if __name__ == "__main__":
    unittest.main()
