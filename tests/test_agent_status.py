import unittest


class TestAgentStatus(unittest.TestCase):
    def test_transition_table(self) -> None:
        from agentmux.contracts.v1 import AgentStatus as S

        self.assertTrue(S.PENDING.can_transition_to(S.RUNNING))
        self.assertTrue(S.RUNNING.can_transition_to(S.BLOCKED))
        self.assertTrue(S.BLOCKED.can_transition_to(S.RUNNING))
        self.assertTrue(S.COMPLETE.can_transition_to(S.RUNNING))
        self.assertTrue(S.RUNNING.can_transition_to(S.STOPPED))
        self.assertTrue(S.STOPPED.can_transition_to(S.RUNNING))
        self.assertFalse(S.STOPPED.can_transition_to(S.IDLE))
        self.assertFalse(S.STOPPED.can_transition_to(S.COMPLETE))
        for s in S:
            self.assertFalse(s.can_transition_to(S.PENDING), s)

    def test_agent_settable_excludes_lifecycle_states(self) -> None:
        from agentmux.contracts.v1 import AGENT_SETTABLE, AgentStatus as S

        self.assertNotIn(S.PENDING, AGENT_SETTABLE)
        self.assertNotIn(S.STOPPED, AGENT_SETTABLE)
        self.assertEqual(len(AGENT_SETTABLE), 4)

    def test_state_document_uses_camel_case(self) -> None:
        from agentmux.contracts.v1 import AgentState, AgentStatus

        st = AgentState(agent_id=3, agent_name="SEC", status=AgentStatus.BLOCKED, current_task="waiting")
        doc = st.to_doc()
        self.assertEqual(doc["agentId"], 3)
        self.assertEqual(doc["agentName"], "SEC")
        self.assertEqual(doc["status"], "blocked")
        self.assertEqual(doc["currentTask"], "waiting")
        self.assertIsNone(doc["lastActive"])

        back = AgentState.model_validate(doc)
        self.assertEqual(back.agent_id, 3)
        self.assertEqual(back.status, AgentStatus.BLOCKED)

    def test_unknown_status_rejected(self) -> None:
        from pydantic import ValidationError

        from agentmux.contracts.v1 import AgentState

        with self.assertRaises(ValidationError):
            AgentState.model_validate({"agentId": 1, "status": "paused"})


if __name__ == "__main__":
    unittest.main()
