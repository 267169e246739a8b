"""Check command - verify configuration and API access."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from linear_mcp import console
from linear_mcp.errors import ConfigError, LinearMCPError
from linear_mcp.linear.client import LinearClient, verify_connection
from linear_mcp.linear.models import Team, User
from linear_mcp.server.config import LinearConfig, get_enabled_categories
from linear_mcp.timeout import with_timeout


async def _check_access(config: LinearConfig) -> tuple[User, list[Team]]:
    client = LinearClient(
        config.api_key, url=config.api_url, timeout=config.api_timeout
    )
    try:
        viewer = await verify_connection(client)
        teams = await with_timeout(
            client.teams(), client.timeout, "fetching teams"
        )
        return viewer, teams
    finally:
        await client.aclose()


@dataclass
class Check:
    """Verify the API key and show the effective configuration."""

    show_teams: bool = field(
        default=False,
        metadata={"help": "List the teams visible to the API key"},
    )

    def run(self) -> int:
        """Execute the check command."""
        try:
            config = LinearConfig()
            config.validate()
        except ConfigError as e:
            console.error(str(e))
            return 1

        console.header("Linear MCP Configuration")
        console.key_value("api url", config.api_url)
        console.key_value(
            "tool categories",
            ", ".join(sorted(get_enabled_categories(config.tools))),
        )
        console.key_value("heartbeat interval", f"{config.heartbeat_interval}s")
        console.key_value("api timeout", f"{config.api_timeout}s")
        console.key_value("data dir", config.data_dir)
        console.key_value("debug", config.debug)
        if config.heartbeat_interval == 0:
            console.warning(
                "heartbeat supervision is disabled, a silent client will "
                "never trigger a reconnect"
            )

        console.info(
            f"checking Linear API access (timeout {config.api_timeout}s)"
        )
        try:
            viewer, teams = asyncio.run(_check_access(config))
        except (LinearMCPError, TimeoutError) as e:
            console.error(f"Linear API check failed: {e}")
            return 1

        console.success(f"authenticated as {viewer.name}")
        console.key_value("teams", len(teams))
        if self.show_teams:
            for team in teams:
                console.key_value(team.key, f"{team.name} ({team.id})")
        return 0
