"""AI-assisted narrative analysis of the project portfolio."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from openai import OpenAI

from .config import AIConfig
from .errors import AnalysisFailed
from .models import ProjectRecord

LOGGER = logging.getLogger(__name__)

FAILURE_MESSAGE = "分析失敗，請檢查 API Key 或網路連線。"
EMPTY_MESSAGE = "尚無工程數據，請匯入 Excel 檔案"
DISABLED_MESSAGE = "AI 分析已停用"


@dataclass
class AnalysisResult:
    status: str  # ok, failed or skipped
    text: str
    truncated_context: bool = False

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class BudgetAnalyst:
    """Sends the project list to the summarisation model and returns its analysis."""

    def __init__(self, config: AIConfig) -> None:
        self.config = config
        self.loading = False

    def analyze(self, projects: Sequence[ProjectRecord]) -> AnalysisResult:
        if not projects:
            return AnalysisResult(status="skipped", text=EMPTY_MESSAGE)
        if not self.config.enabled:
            LOGGER.debug("AI analysis disabled in configuration")
            return AnalysisResult(status="skipped", text=DISABLED_MESSAGE)

        self.loading = True
        try:
            text, truncated = self._request(projects)
        except AnalysisFailed as exc:
            LOGGER.error("Budget analysis failed: %s", exc)
            return AnalysisResult(status="failed", text=FAILURE_MESSAGE)
        finally:
            self.loading = False
        return AnalysisResult(status="ok", text=text, truncated_context=truncated)

    def build_prompt(self, projects: Sequence[ProjectRecord]) -> tuple[str, bool]:
        serialised = json.dumps([p.to_dict() for p in projects], ensure_ascii=False, indent=2)
        truncated = False
        if len(serialised) > self.config.max_context_chars:
            truncated = True
            serialised = serialised[: self.config.max_context_chars]
        return self.config.prompt_template.format(projects=serialised), truncated

    def _request(self, projects: Sequence[ProjectRecord]) -> tuple[str, bool]:
        api_key = self.config.resolve_api_key()
        if not api_key:
            raise AnalysisFailed(
                f"API key unavailable; expected at {self.config.api_key_path} or via {self.config.api_key_env}"
            )

        prompt, truncated = self.build_prompt(projects)
        try:
            client = OpenAI(api_key=api_key)
            response = client.responses.create(
                model=self.config.model,
                input=[{"role": "user", "content": prompt}],
            )
        except Exception as exc:
            raise AnalysisFailed(str(exc)) from exc

        text = _extract_response_text(response)
        if not text:
            raise AnalysisFailed("response did not contain text output")
        return text, truncated


def _extract_response_text(response: object) -> Optional[str]:
    text = getattr(response, "output_text", None)
    if not isinstance(text, str):
        return None
    return text.strip() or None


__all__ = ["BudgetAnalyst", "AnalysisResult", "FAILURE_MESSAGE"]
