"""
Prompt templates for LLM calls.

Templates live in ``prompts.json`` next to the package and use
``string.Template`` placeholders (``$content``). Edits to the file are picked
up on the next lookup without a restart.
"""

import json
import logging
from pathlib import Path
from string import Template
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_PROMPTS_FILE = Path(__file__).resolve().parent.parent / "prompts.json"
FALLBACK_TEMPERATURE = 0.3
FALLBACK_MAX_TOKENS = 300


class PromptManager:
    def __init__(self, prompts_file: Union[str, Path] = DEFAULT_PROMPTS_FILE):
        self.prompts_file = Path(prompts_file)
        self._data: Dict[str, Any] = {}
        self._loaded_mtime: Optional[float] = None
        self.reload()

    def reload(self) -> None:
        """Read the prompts file. Raises FileNotFoundError if it is gone."""
        try:
            mtime = self.prompts_file.stat().st_mtime
        except FileNotFoundError as exc:
            raise FileNotFoundError(f"Prompts file not found: {self.prompts_file}") from exc

        self._data = json.loads(self.prompts_file.read_text(encoding="utf-8"))
        self._loaded_mtime = mtime
        logger.debug("[PROMPTS] Loaded %d prompts from %s", len(self._prompts), self.prompts_file)

    @property
    def _prompts(self) -> Dict[str, Dict[str, Any]]:
        return self._data.get("prompts", {})

    def _refresh(self) -> None:
        try:
            mtime = self.prompts_file.stat().st_mtime
        except FileNotFoundError:
            # keep serving the last good copy
            return
        if mtime != self._loaded_mtime:
            self.reload()

    def get_prompt(self, prompt_name: str) -> Dict[str, Any]:
        """
        Copy of one prompt entry.

        Raises:
            KeyError: If prompt not found
        """
        self._refresh()
        entry = self._prompts.get(prompt_name)
        if entry is None:
            raise KeyError(f"Prompt not found: {prompt_name}")
        return dict(entry)

    def render_prompt(self, prompt_name: str, variables: Dict[str, Any]) -> str:
        template = Template(self.get_prompt(prompt_name).get("template", ""))
        try:
            return template.substitute(variables)
        except KeyError as exc:
            raise ValueError(
                f"Prompt '{prompt_name}' needs variable '{exc.args[0]}'"
            ) from exc

    def get_prompt_metadata(self, prompt_name: str) -> Dict[str, Any]:
        """System text and sampling settings, with file-level defaults filled in."""
        entry = self.get_prompt(prompt_name)
        defaults = self._data.get("defaults", {})
        return {
            "description": entry.get("description", ""),
            "system": entry.get("system", ""),
            "temperature": entry.get("temperature", defaults.get("default_temperature", FALLBACK_TEMPERATURE)),
            "max_tokens": entry.get("max_tokens", defaults.get("default_max_tokens", FALLBACK_MAX_TOKENS)),
            "output_format": entry.get("output_format", "json"),
        }

    def list_prompts(self) -> List[str]:
        self._refresh()
        return sorted(self._prompts)


_prompt_manager: Optional[PromptManager] = None


def get_prompt_manager() -> PromptManager:
    global _prompt_manager
    if _prompt_manager is None:
        _prompt_manager = PromptManager()
    return _prompt_manager
