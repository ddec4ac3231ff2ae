from __future__ import annotations

import json
import re
from typing import Any

import requests

from aion.errors import PlanningServiceError
from aion.models import AIConfig


JSON_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL)


def _extract_json_payload(content: str) -> str:
    text = content.strip()
    if text.startswith("{") and text.endswith("}"):
        return text
    block = JSON_BLOCK_PATTERN.search(text)
    if block:
        return block.group(1)
    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        return text[start : end + 1]
    raise ValueError("AI response does not contain valid JSON.")


class OpenAICompatibleClient:
    def __init__(self, config: AIConfig) -> None:
        self.config = config

    def is_configured(self) -> bool:
        return bool(self.config.base_url and self.config.api_key and self.config.model)

    def _chat_endpoint(self) -> str:
        base = self.config.base_url.rstrip("/")
        if base.endswith("/chat/completions"):
            return base
        return f"{base}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def _complete(self, body: dict[str, Any]) -> str:
        response = requests.post(
            self._chat_endpoint(),
            headers=self._headers(),
            json={"model": self.config.model, **body},
            timeout=self.config.timeout_seconds,
        )
        response.raise_for_status()
        payload = response.json()
        return str(payload["choices"][0]["message"]["content"] or "")

    def generate_plan(self, *, messages: list[dict[str, str]]) -> dict[str, Any]:
        """Ask the planner for a day plan and return the decoded JSON object.

        Every failure (missing config, transport, HTTP status, undecodable
        reply) is raised as PlanningServiceError.
        """
        if not self.is_configured():
            raise PlanningServiceError("AI config incomplete: base_url/api_key/model required.")
        try:
            content = self._complete(
                {
                    "messages": messages,
                    "temperature": self.config.temperature,
                    "response_format": {"type": "json_object"},
                }
            )
            result = json.loads(_extract_json_payload(content))
        except requests.RequestException as exc:
            raise PlanningServiceError(f"planner request failed: {exc}") from exc
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise PlanningServiceError(f"planner reply malformed: {exc}") from exc
        if not isinstance(result, dict):
            raise PlanningServiceError("AI response root must be an object.")
        return result

    def chat(self, *, messages: list[dict[str, str]]) -> str:
        if not self.is_configured():
            raise PlanningServiceError("AI config incomplete: base_url/api_key/model required.")
        try:
            return self._complete({"messages": messages, "temperature": self.config.temperature}).strip()
        except requests.RequestException as exc:
            raise PlanningServiceError(f"coach request failed: {exc}") from exc
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise PlanningServiceError(f"coach reply malformed: {exc}") from exc

    def test_connectivity(self) -> tuple[bool, str]:
        if not self.is_configured():
            return False, "AI config incomplete: base_url/api_key/model required."
        try:
            content = self._complete(
                {
                    "messages": [{"role": "user", "content": "Reply with: OK"}],
                    "temperature": 0,
                    "max_tokens": 8,
                }
            )
        except requests.HTTPError as exc:
            response = exc.response
            if response is not None:
                return False, f"HTTP {response.status_code}: {response.text[:300]}"
            return False, f"{type(exc).__name__}: {exc}"
        except Exception as exc:
            return False, f"{type(exc).__name__}: {exc}"
        content_text = content.strip().replace("\n", " ")
        return True, f"Connected. Model response: {content_text[:120]}"
