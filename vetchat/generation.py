"""Text generation clients for the free-form veterinary chat.

The chat service talks to a ``TextGenerator``. Which one is decided once at
startup by ``create_generator(settings)``:

  claude  → AnthropicGenerator (anthropic SDK)
  ollama  → OllamaGenerator (local model over HTTP)
  mock    → KeywordGenerator (canned replies, no network)

Real clients are wrapped in ``FallbackGenerator`` so an upstream failure
degrades to the keyword replies instead of surfacing as an error.

When the model decides the user wants an appointment it answers with
``BOOKING_INTENT_MARKER``; the chat service starts the booking flow instead of
showing that text.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import httpx
from anthropic import AsyncAnthropic

from vetchat.config import Settings
from vetchat.errors import UpstreamFailure
from vetchat.models import ConversationContext, Message, MessageRole

log = logging.getLogger("vetchat.generation")

BOOKING_INTENT_MARKER = "[BOOKING_INTENT]"

HISTORY_WINDOW = 10

SYSTEM_PROMPT = f"""You are a friendly and knowledgeable veterinary assistant chatbot. Your role is to:

1. Answer questions ONLY about veterinary and pet-related topics, including:
   - Pet care and grooming
   - Vaccinations and preventive care
   - Diet and nutrition for pets
   - Common pet illnesses and symptoms
   - General pet health advice
   - Pet behavior questions

2. IMPORTANT RESTRICTIONS:
   - If asked about non-veterinary topics (politics, coding, math, general knowledge, etc.), politely decline and explain you can only help with pet and veterinary questions.
   - Never provide specific medical diagnoses. Always recommend consulting a veterinarian for serious concerns.
   - Never prescribe medications or dosages.

3. When responding:
   - Be warm, friendly, and empathetic
   - Use simple language that pet owners can understand
   - If the user has provided their pet's name, use it in your responses
   - Keep responses concise but helpful (2-4 paragraphs max)

4. For appointment booking:
   - If the user wants to book an appointment, schedule a vet visit, or make a reservation, respond EXACTLY with: "{BOOKING_INTENT_MARKER}"
   - This signals the system to start the booking flow

Remember: You are a helpful assistant, not a replacement for professional veterinary care."""


def has_booking_intent(text: str) -> bool:
    return BOOKING_INTENT_MARKER in (text or "")


def build_prompt(
    messages: Sequence[Message], context: Optional[ConversationContext] = None,
) -> tuple[str, str]:
    """Render (system_prompt, user_prompt) from recent history and context."""
    system = SYSTEM_PROMPT
    context_parts = []
    if context and context.user_name:
        context_parts.append(f"User's name: {context.user_name}.")
    if context and context.pet_name:
        context_parts.append(f"Pet's name: {context.pet_name}.")
    if context_parts:
        system += "\n\nContext: " + " ".join(context_parts)

    history = "\n".join(
        f"{'User' if m.role == MessageRole.USER else 'Assistant'}: {m.content}"
        for m in list(messages)[-HISTORY_WINDOW:]
    )
    user_prompt = (
        f"Conversation history:\n{history}\n\n"
        "Please respond to the user's last message."
    )
    return system, user_prompt


def _last_user_message(messages: Sequence[Message]) -> str:
    for m in reversed(list(messages)):
        if m.role == MessageRole.USER:
            return m.content
    return ""


class TextGenerator(ABC):
    """Produces the assistant's free-form reply."""

    name: str = "generator"

    @abstractmethod
    async def generate(
        self, messages: Sequence[Message], context: Optional[ConversationContext] = None,
    ) -> str:
        """Return the reply to the last user message in ``messages``."""

    async def aclose(self) -> None:
        """Release network resources held by the client."""

    def status(self) -> dict[str, Any]:
        return {"provider": self.name}


class KeywordGenerator(TextGenerator):
    """Deterministic canned replies picked by keyword."""

    name = "mock"

    async def generate(
        self, messages: Sequence[Message], context: Optional[ConversationContext] = None,
    ) -> str:
        return self.reply_for(_last_user_message(messages))

    @staticmethod
    def reply_for(message: str) -> str:
        lowered = message.lower()

        if any(k in lowered for k in ("book", "appointment", "schedule")):
            return BOOKING_INTENT_MARKER

        if "vaccine" in lowered or "vaccination" in lowered:
            return (
                "Vaccinations are crucial for your pet's health! Core vaccines for dogs "
                "typically include rabies, distemper, parvovirus, and adenovirus. For cats, "
                "core vaccines include rabies, feline panleukopenia, calicivirus, and "
                "herpesvirus. I recommend consulting with your veterinarian for a "
                "personalized vaccination schedule based on your pet's age, lifestyle, "
                "and health status."
            )

        if any(k in lowered for k in ("food", "diet", "eat")):
            return (
                "A balanced diet is essential for your pet's wellbeing! The best diet "
                "depends on your pet's species, age, size, and any health conditions. "
                "Generally, look for high-quality pet food with real meat as the first "
                "ingredient. Avoid foods with excessive fillers or artificial additives. "
                "Fresh water should always be available. Would you like more specific "
                "dietary advice for your pet?"
            )

        return (
            "I'm here to help with any veterinary or pet-related questions you might have! "
            "Feel free to ask about pet care, nutrition, vaccinations, common health "
            "concerns, or if you'd like to book an appointment with our veterinary team."
        )


class AnthropicGenerator(TextGenerator):
    """Claude via the Anthropic Messages API."""

    name = "claude"

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 30.0,
        max_tokens: int = 1024,
        client: Optional[AsyncAnthropic] = None,
    ) -> None:
        self._model = model
        self._max_tokens = max_tokens
        self._client = client or AsyncAnthropic(api_key=api_key, timeout=timeout)

    async def generate(
        self, messages: Sequence[Message], context: Optional[ConversationContext] = None,
    ) -> str:
        system, prompt = build_prompt(messages, context)
        response = await self._client.messages.create(
            model=self._model,
            max_tokens=self._max_tokens,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        ).strip()
        if not text:
            raise UpstreamFailure("Claude returned an empty response")
        return text

    async def aclose(self) -> None:
        await self._client.close()

    def status(self) -> dict[str, Any]:
        return {"provider": self.name, "model": self._model}


class OllamaGenerator(TextGenerator):
    """A local model served by Ollama's /api/chat endpoint."""

    name = "ollama"

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._model = model
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def generate(
        self, messages: Sequence[Message], context: Optional[ConversationContext] = None,
    ) -> str:
        system, prompt = build_prompt(messages, context)
        resp = await self._client.post("/api/chat", json={
            "model": self._model,
            "stream": False,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
        })
        resp.raise_for_status()
        text = (resp.json().get("message") or {}).get("content", "").strip()
        if not text:
            raise UpstreamFailure("Ollama returned an empty response")
        return text

    async def aclose(self) -> None:
        await self._client.aclose()

    def status(self) -> dict[str, Any]:
        return {"provider": self.name, "model": self._model}


class FallbackGenerator(TextGenerator):
    """Wraps a real client; any failure falls back to the keyword replies."""

    def __init__(self, primary: TextGenerator, fallback: Optional[TextGenerator] = None) -> None:
        self._primary = primary
        self._fallback = fallback or KeywordGenerator()
        self.name = primary.name
        self.failures = 0

    async def generate(
        self, messages: Sequence[Message], context: Optional[ConversationContext] = None,
    ) -> str:
        try:
            return await self._primary.generate(messages, context)
        except Exception as e:
            self.failures += 1
            log.error("%s generation failed, using canned reply: %s", self._primary.name, e)
            return await self._fallback.generate(messages, context)

    async def aclose(self) -> None:
        await self._primary.aclose()

    def status(self) -> dict[str, Any]:
        return {**self._primary.status(), "fallback": self._fallback.name, "failures": self.failures}


def create_generator(settings: Settings) -> TextGenerator:
    """Construct the configured generator. Call once at startup."""
    provider = settings.llm_provider
    if provider == "claude" and settings.anthropic_api_key:
        log.info("Text generation: Claude (%s)", settings.anthropic_model)
        return FallbackGenerator(AnthropicGenerator(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            timeout=settings.llm_timeout_seconds,
        ))
    if provider == "ollama":
        log.info("Text generation: Ollama %s at %s", settings.ollama_model, settings.ollama_url)
        return FallbackGenerator(OllamaGenerator(
            base_url=settings.ollama_url,
            model=settings.ollama_model,
            timeout=settings.llm_timeout_seconds,
        ))
    if provider != "mock":
        log.warning("LLM provider %r not usable; replies will be canned", provider)
    return KeywordGenerator()
