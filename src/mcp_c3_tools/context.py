"""Shared state handed to every operation."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from mcp_c3_tools.config import (
    JsonStore,
    create_settings_store,
    create_state_store,
    get_tool_home,
)
from mcp_c3_tools.constants import FMT_INSTALL_FOLDER, FMT_TITLE, LSP_INSTALL_FOLDER, LSP_TITLE
from mcp_c3_tools.lsp.supervisor import LanguageServerSupervisor
from mcp_c3_tools.types import InstallTarget
from mcp_c3_tools.ui import Prompter


@dataclass
class ToolContext:
    home: Path
    settings: JsonStore
    state: JsonStore
    prompter: Prompter = field(default_factory=Prompter)
    supervisor: LanguageServerSupervisor = field(default_factory=LanguageServerSupervisor)

    @property
    def lsp_target(self) -> InstallTarget:
        return InstallTarget(LSP_TITLE, self.home / LSP_INSTALL_FOLDER, "c3.lsp.path")

    @property
    def fmt_target(self) -> InstallTarget:
        return InstallTarget(FMT_TITLE, self.home / FMT_INSTALL_FOLDER, "c3.format.path")

    def with_prompter(self, prompter: Prompter) -> "ToolContext":
        """Same stores and supervisor, different interaction hooks."""
        return ToolContext(
            home=self.home,
            settings=self.settings,
            state=self.state,
            prompter=prompter,
            supervisor=self.supervisor,
        )


def create_context(home: Optional[Path] = None, prompter: Optional[Prompter] = None) -> ToolContext:
    home = Path(home) if home else get_tool_home()
    return ToolContext(
        home=home,
        settings=create_settings_store(home),
        state=create_state_store(home),
        prompter=prompter or Prompter(),
    )
