"""URL builders for the playground backend API."""


class APIRoutes:
    """Playground, team and dynamic agent endpoints."""

    @staticmethod
    def status(base: str) -> str:
        return f"{base}/v1/playground/status"

    @staticmethod
    def agents(base: str) -> str:
        return f"{base}/v1/playground/agents"

    @staticmethod
    def agent_run(base: str, agent_id: str) -> str:
        return f"{base}/v1/playground/agents/{agent_id}/runs"

    @staticmethod
    def agent_sessions(base: str, agent_id: str) -> str:
        return f"{base}/v1/playground/agents/{agent_id}/sessions"

    @staticmethod
    def agent_session(base: str, agent_id: str, session_id: str) -> str:
        return f"{base}/v1/playground/agents/{agent_id}/sessions/{session_id}"

    @staticmethod
    def teams(base: str) -> str:
        return f"{base}/v1/playground/teams"

    @staticmethod
    def team_run(base: str, team_id: str) -> str:
        return f"{base}/v1/playground/teams/{team_id}/runs"

    @staticmethod
    def team_sessions(base: str, team_id: str) -> str:
        return f"{base}/v1/playground/teams/{team_id}/sessions"

    @staticmethod
    def team_session(base: str, team_id: str, session_id: str) -> str:
        return f"{base}/v1/playground/teams/{team_id}/sessions/{session_id}"

    @staticmethod
    def dynamic_agents(base: str) -> str:
        return f"{base}/v1/dynamic-agents"

    @staticmethod
    def dynamic_agent_chat(base: str, agent_id: str) -> str:
        return f"{base}/v1/dynamic-agents/{agent_id}/chat"

    @staticmethod
    def dynamic_agent_sessions(base: str, agent_id: str) -> str:
        return f"{base}/v1/dynamic-agents/{agent_id}/sessions"

    @staticmethod
    def dynamic_agent_session(base: str, agent_id: str, session_id: str) -> str:
        return f"{base}/v1/dynamic-agents/{agent_id}/sessions/{session_id}"
