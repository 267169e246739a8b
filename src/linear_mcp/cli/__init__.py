"""linear-mcp CLI - serve Linear over MCP.

Uses tyro for type-driven CLI generation from dataclasses.
"""

from __future__ import annotations

from typing import Annotated

import tyro

from linear_mcp.cli.commands.check import Check
from linear_mcp.cli.commands.serve import Serve

# Type aliases for subcommand annotations
_Serve = Annotated[Serve, tyro.conf.subcommand("serve")]
_Check = Annotated[Check, tyro.conf.subcommand("check")]

Command = _Serve | _Check


def main() -> int:
    """Entry point for the CLI."""
    # configure structlog (respects LINEAR_MCP_DEBUG env var)
    from linear_mcp.logging_config import configure_logging
    from linear_mcp.paths import get_data_dir

    configure_logging(data_dir=get_data_dir())

    try:
        cmd = tyro.cli(
            Command,
            prog="linear-mcp",
            description="MCP server for the Linear issue tracker.",
        )
        return cmd.run()
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 1
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        from linear_mcp import console

        console.error(str(e))
        return 1
