"""
mcplink - app-side client for local tool servers spoken to over stdio.
"""

from loguru import logger

from mcplink.transport import TransportClient, ToolOutcome
from mcplink.utils.exceptions import McpLinkError, ServerStartError, ToolNameError

__version__ = "0.1.0"
__logo__ = "🔌"

# Library logging stays silent until the application opts in with logger.enable("mcplink")
logger.disable("mcplink")

__all__ = [
    "McpLinkError",
    "ServerStartError",
    "ToolNameError",
    "ToolOutcome",
    "TransportClient",
    "__version__",
]
