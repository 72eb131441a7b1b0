"""
Shopping assistant — stateless chat over an OpenAI-compatible
``/chat/completions`` endpoint.

Independent of the order core: it only reads the store knowledge base
and whatever context the page sends along.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
from kungfu import Result, Ok, Error

from storefront.config import AssistantSettings
from storefront.errors import Failure, Failures
from storefront.lift import provider

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "AI service is not configured properly"


@dataclass(frozen=True, slots=True)
class KnowledgeBase:
    name: str = "Storefront"
    description: str = "Construction and hardware supply store with nationwide delivery."
    services: tuple[str, ...] = (
        "Fast Delivery: same-day within city limits, 1-3 business days nationwide, with tracking",
        "Installation Services: professional installation by certified technicians",
        "Custom Cutting & Sizing: wood, glass and metal cut to specification",
        "Contractor Support: special pricing and bulk ordering",
        "Project Consultation: material selection and quantity estimation",
    )
    categories: tuple[str, ...] = (
        "Building Materials",
        "Structural Components",
        "Flooring",
        "Insulation",
        "Windows & Doors",
    )
    policies: tuple[str, ...] = (
        "Delivered orders can be returned within 30 days of purchase",
        "Payment by card, mobile money or crypto wallet",
    )
    contact: dict[str, str] = field(default_factory=lambda: {
        "email": "support@example.com",
        "hours": "Mon-Fri 8am-8pm, Sat 9am-5pm",
    })

    def render(self) -> str:
        lines = [f"Name: {self.name}", f"About: {self.description}", "Services:"]
        lines += [f"- {s}" for s in self.services]
        lines.append("Product categories: " + ", ".join(self.categories))
        lines.append("Policies:")
        lines += [f"- {p}" for p in self.policies]
        lines += [f"{key.capitalize()}: {value}" for key, value in self.contact.items()]
        return "\n".join(lines)


def system_prompt(knowledge: KnowledgeBase, context: dict[str, Any] | None = None) -> str:
    prompt = (
        f"You are {knowledge.name}'s shopping assistant. Give clear, concise and accurate answers.\n\n"
        "Guidelines:\n"
        "1. Keep responses brief by default\n"
        "2. Only give detailed explanations when asked\n"
        "3. Use bullet points for multiple items\n"
        "4. Ask whether the customer wants more detail before going long\n\n"
        f"Company information:\n{knowledge.render()}"
    )
    if context:
        prompt += f"\n\nCurrent page context:\n{json.dumps(context, default=str)}"
    return prompt


class Assistant:
    def __init__(
        self,
        settings: AssistantSettings,
        client: httpx.AsyncClient,
        knowledge: KnowledgeBase | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._knowledge = knowledge or KnowledgeBase()

    @property
    def configured(self) -> bool:
        return bool(self._settings.api_key)

    async def reply(self, messages: list[dict[str, str]], context: dict[str, Any] | None = None) -> Result[str, Failure]:
        if not self.configured:
            logger.error("Assistant API key is not configured")
            return Error(Failures.provider(NOT_CONFIGURED))

        payload = {
            "model": self._settings.model,
            "messages": [{"role": "system", "content": system_prompt(self._knowledge, context)}, *messages],
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
        }

        async def call() -> dict[str, Any]:
            response = await self._client.post(
                f"{self._settings.base_url}/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self._settings.api_key}"},
            )
            response.raise_for_status()
            return response.json()

        match await provider(call, "Assistant request failed"):
            case Error(e):
                logger.warning("Assistant call failed: %s", e.message)
                return Error(e)
            case Ok(body):
                try:
                    return Ok(body["choices"][0]["message"]["content"])
                except (KeyError, IndexError, TypeError) as e:
                    return Error(Failures.provider(f"Malformed assistant response: {e}", e))


__all__ = ("Assistant", "KnowledgeBase", "system_prompt", "NOT_CONFIGURED")
