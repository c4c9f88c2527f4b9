"""
Persona rosters for each execution strategy.
"""

from .models import Agent


# Ordered (display name, persona type) rosters per strategy
ROSTERS: dict[str, list[tuple[str, str]]] = {
    "development": [
        ("Coordinator", "coordinator"),
        ("System Architect", "architect"),
        ("Backend Developer", "developer"),
        ("QA Engineer", "tester"),
        ("Code Reviewer", "reviewer"),
    ],
    "research": [
        ("Lead Researcher", "researcher"),
        ("Data Analyst", "analyst"),
        ("Research Assistant", "researcher"),
    ],
    "analysis": [
        ("Senior Analyst", "analyst"),
        ("Data Scientist", "analyst"),
        ("Business Analyst", "analyst"),
    ],
    "auto": [
        ("Coordinator", "coordinator"),
        ("Architect", "architect"),
        ("Developer", "developer"),
        ("Analyst", "analyst"),
        ("Tester", "tester"),
    ],
}

DEFAULT_STRATEGY = "auto"

PERSONALITIES = {
    "architect": (
        "You are a system architect focused on designing robust, scalable solutions. "
        "You think in terms of components, interfaces, and patterns."
    ),
    "developer": (
        "You are an experienced developer who writes clean, efficient, and well-documented code. "
        "You follow best practices and write tests."
    ),
    "researcher": (
        "You are a thorough researcher who gathers information from multiple perspectives "
        "and provides evidence-based insights."
    ),
    "analyst": (
        "You are an analyst who examines information critically, identifies patterns, "
        "and provides actionable insights."
    ),
    "tester": (
        "You are a QA engineer focused on quality. You think about edge cases, "
        "write test scenarios, and validate implementations thoroughly."
    ),
    "reviewer": (
        "You are a reviewer who checks quality, security, and correctness, "
        "and gives constructive, specific feedback."
    ),
    "coordinator": (
        "You are a project coordinator who keeps work focused on the objective "
        "and makes sure every piece fits together."
    ),
}


def describe_persona(persona_type: str) -> str:
    """Framing text for a persona type."""
    return PERSONALITIES.get(
        persona_type,
        f"You are a {persona_type} specialist focused on delivering high-quality results.",
    )


class AgentPool:
    """Builds a deterministic roster of personas for a strategy."""

    def roster_for(self, strategy: str) -> list[tuple[str, str]]:
        """Roster for a strategy name; unknown names get the default roster."""
        key = (strategy or DEFAULT_STRATEGY).strip().lower()
        return ROSTERS.get(key, ROSTERS[DEFAULT_STRATEGY])

    def build(self, strategy: str, max_agents: int) -> list[Agent]:
        """
        Build exactly max_agents agents for a strategy.

        The roster is truncated, or cycled when max_agents exceeds it.
        Repeated calls with the same arguments return identical rosters.

        Args:
            strategy: Strategy name (see ROSTERS)
            max_agents: Number of agents to produce

        Returns:
            List of Agents in READY status
        """
        if max_agents < 1:
            raise ValueError(f"max_agents must be at least 1, got {max_agents}")

        roster = self.roster_for(strategy)
        agents = []
        for index in range(max_agents):
            name, persona_type = roster[index % len(roster)]
            cycle = index // len(roster)
            if cycle:
                name = f"{name} {cycle + 1}"
            agents.append(
                Agent(
                    id=f"agent-{index}-{persona_type}",
                    display_name=name,
                    persona_type=persona_type,
                )
            )
        return agents
