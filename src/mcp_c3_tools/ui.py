"""User interaction hooks used by the setup and update flows."""

from typing import List, Optional, Sequence, Tuple

from mcp_c3_tools.logging import get_logger

logger = get_logger(__name__)


class Prompter:
    """Non-interactive prompter: logs messages and declines every choice."""

    async def show_choice(self, message: str, choices: Sequence[str]) -> Optional[str]:
        logger.info({"event": "prompt_declined", "message": message, "choices": list(choices)})
        return None

    async def pick_file(self, title: str) -> Optional[str]:
        logger.info({"event": "file_prompt_declined", "title": title})
        return None

    async def show_info(self, message: str) -> None:
        logger.info({"event": "user_info", "message": message})

    async def show_error(self, message: str) -> None:
        logger.error({"event": "user_error", "message": message})


class ScriptedPrompter(Prompter):
    """Answers prompts from a preset list and records what was shown.

    The first entry of ``answers`` that is among the offered choices is
    picked; ``file_path`` is returned from file prompts.
    """

    def __init__(self, answers: Sequence[str] = (), file_path: Optional[str] = None):
        self.answers = list(answers)
        self.file_path = file_path
        self.prompts: List[Tuple[str, List[str]]] = []
        self.infos: List[str] = []
        self.errors: List[str] = []

    async def show_choice(self, message: str, choices: Sequence[str]) -> Optional[str]:
        self.prompts.append((message, list(choices)))
        for answer in self.answers:
            if answer in choices:
                logger.debug({"event": "prompt_answered", "message": message, "answer": answer})
                return answer
        return await super().show_choice(message, choices)

    async def pick_file(self, title: str) -> Optional[str]:
        if self.file_path:
            return self.file_path
        return await super().pick_file(title)

    async def show_info(self, message: str) -> None:
        self.infos.append(message)
        await super().show_info(message)

    async def show_error(self, message: str) -> None:
        self.errors.append(message)
        await super().show_error(message)
