"""Documentation generation client backed by Claude."""

import asyncio
import os
import re
from typing import Callable, Dict, List, Optional, Protocol

import anthropic
from anthropic import AsyncAnthropic
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from autodoc.errors import BackendError, ConfigurationError, InvalidOutputError, TransientBackendError
from autodoc.models import (
    Declaration,
    DeclarationKind,
    GenerationConfig,
    GenerationErrorKind,
    GenerationFailure,
    GenerationRequest,
    GenerationResult,
    GenerationSuccess,
    Verdict,
)
from autodoc.utils.logger import setup_logger

logger = setup_logger(__name__)

KIND_LABELS: Dict[DeclarationKind, str] = {
    DeclarationKind.FUNCTION: "function",
    DeclarationKind.CLASS: "class",
    DeclarationKind.METHOD: "class method",
    DeclarationKind.INTERFACE: "interface",
    DeclarationKind.TYPE_ALIAS: "type alias",
    DeclarationKind.CONST: "exported constant",
}

# Extra guidance per kind; callables get @param/@returns tags
KIND_GUIDANCE: Dict[DeclarationKind, str] = {
    DeclarationKind.FUNCTION: "Describe what the function does, then one @param tag per parameter and @returns if it returns a value.",
    DeclarationKind.METHOD: "Describe what the method does, then one @param tag per parameter and @returns if it returns a value.",
    DeclarationKind.CLASS: "Describe the responsibility of the class. Do not document individual members.",
    DeclarationKind.INTERFACE: "Describe what the interface models. Do not document individual properties.",
    DeclarationKind.TYPE_ALIAS: "Describe what the type represents.",
    DeclarationKind.CONST: "Describe what the constant holds and how it is used.",
}

# Status codes worth retrying besides RateLimitError/InternalServerError
_TRANSIENT_STATUS = {408, 409, 429, 529}

_JSDOC_PREFIX = re.compile(r"^\s*\*?\s?")


class GenerationBackend(Protocol):
    """Anything that turns a prompt into text."""

    async def complete(self, prompt: str) -> str:
        """Return raw completion text.

        Raises:
            TransientBackendError: For failures worth retrying
            BackendError: For permanent failures
        """
        ...


class AnthropicBackend:
    """Generation backend using the Anthropic messages API."""

    def __init__(self, config: GenerationConfig, client: Optional[AsyncAnthropic] = None):
        """Initialize backend.

        Args:
            config: Generation configuration
            client: Optional preconfigured async client

        Raises:
            ConfigurationError: If no API key is available
        """
        self.config = config
        self.api_key = config.api_key or os.getenv("ANTHROPIC_API_KEY")

        if not self.api_key and client is None:
            raise ConfigurationError(
                "No API key provided. Set ANTHROPIC_API_KEY environment variable or pass in config"
            )

        self.client = client or AsyncAnthropic(api_key=self.api_key)

    async def complete(self, prompt: str) -> str:
        try:
            response = await self.client.messages.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except (anthropic.RateLimitError, anthropic.InternalServerError, anthropic.APIConnectionError) as e:
            raise TransientBackendError(str(e)) from e
        except anthropic.APIStatusError as e:
            if e.status_code in _TRANSIENT_STATUS or e.status_code >= 500:
                raise TransientBackendError(str(e)) from e
            raise BackendError(f"Anthropic API error {e.status_code}: {e}") from e

        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )


class DocGenerationClient:
    """Requests documentation text with bounded concurrency and retries.

    The client never raises for a single declaration: every call ends in a
    GenerationSuccess or a GenerationFailure.
    """

    # Invalid output gets this many extra rounds before giving up
    INVALID_OUTPUT_RETRIES = 1

    def __init__(self, backend: GenerationBackend, config: GenerationConfig):
        """Initialize generation client.

        Args:
            backend: Text generation backend
            config: Generation configuration (concurrency, retry policy)
        """
        self.backend = backend
        self.config = config

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(
                multiplier=self.config.backoff_initial,
                max=self.config.backoff_max,
            ),
            retry=retry_if_exception_type(TransientBackendError),
            reraise=True,
        )

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate documentation text for one declaration.

        Args:
            request: Declaration, verdict and code context

        Returns:
            GenerationSuccess with cleaned text, or GenerationFailure
        """
        declaration = request.declaration
        prompt = self.build_prompt(request)
        attempts = 0
        problem = ""

        for _ in range(1 + self.INVALID_OUTPUT_RETRIES):
            try:
                async for attempt in self._retrying():
                    with attempt:
                        attempts += 1
                        raw = await self.backend.complete(prompt)
            except TransientBackendError as e:
                logger.warning(f"Giving up on {declaration.qualified_name} after {attempts} attempts: {e}")
                return _failure(declaration, GenerationErrorKind.RETRIES_EXHAUSTED, attempts, str(e))
            except BackendError as e:
                logger.warning(f"Backend rejected {declaration.qualified_name}: {e}")
                return _failure(declaration, GenerationErrorKind.BACKEND_ERROR, attempts, str(e))
            except Exception as e:
                logger.error(f"Unexpected error generating {declaration.qualified_name}: {e}", exc_info=True)
                return _failure(declaration, GenerationErrorKind.BACKEND_ERROR, attempts, str(e))

            try:
                text = clean_generated_text(raw)
            except InvalidOutputError as e:
                problem = str(e)
                logger.debug(f"Invalid output for {declaration.qualified_name}: {problem}")
                continue

            logger.debug(f"Generated documentation for {declaration.file_path}:{declaration.qualified_name}")
            return GenerationSuccess(declaration=declaration, text=text, attempts=attempts)

        logger.warning(f"Invalid output for {declaration.qualified_name}: {problem}")
        return _failure(declaration, GenerationErrorKind.INVALID_OUTPUT, attempts, problem)

    async def generate_all(
        self,
        requests: List[GenerationRequest],
        timeout: Optional[float] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> List[GenerationResult]:
        """Generate documentation for many declarations concurrently.

        At most ``max_concurrency`` requests are in flight. When ``timeout``
        expires, unfinished requests are cancelled and reported as
        GenerationFailure with kind ``cancelled``.

        Args:
            requests: Generation requests
            timeout: Optional overall deadline in seconds
            progress_callback: Called with (completed, total) after each request

        Returns:
            Results in request order
        """
        if not requests:
            return []

        semaphore = asyncio.Semaphore(self.config.max_concurrency)
        completed = 0

        async def worker(request: GenerationRequest) -> GenerationResult:
            nonlocal completed
            async with semaphore:
                result = await self.generate(request)
            completed += 1
            if progress_callback:
                progress_callback(completed, len(requests))
            return result

        tasks = [asyncio.ensure_future(worker(request)) for request in requests]
        done, pending = await asyncio.wait(tasks, timeout=timeout)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(f"Generation aborted with {len(pending)} requests unfinished")

        results: List[GenerationResult] = []
        for request, task in zip(requests, tasks):
            if task in done:
                results.append(task.result())
            else:
                results.append(_failure(
                    request.declaration, GenerationErrorKind.CANCELLED, 0, "run aborted before completion"
                ))
        return results

    def build_prompt(self, request: GenerationRequest) -> str:
        """Build the generation prompt for one declaration.

        Args:
            request: Generation request

        Returns:
            Formatted prompt string
        """
        declaration = request.declaration

        prompt_parts = [
            "You are an expert technical writer documenting a TypeScript/JavaScript codebase.",
            "Write the body of a JSDoc comment for the declaration below.",
            "",
            "### Declaration:",
            f"- Kind: {KIND_LABELS[declaration.kind]}",
            f"- Name: {declaration.qualified_name}",
            f"- File: {declaration.file_path}:{declaration.header.start_line}",
            f"- Exported: {'yes' if declaration.exported else 'no'}",
            f"- Signature: `{declaration.signature}`",
        ]

        if declaration.parameters:
            prompt_parts.append(f"- Parameters ({len(declaration.parameters)}):")
            for param in declaration.parameters:
                param_str = f"  - {param.name}"
                if param.type:
                    param_str += f": {param.type}"
                prompt_parts.append(param_str)

        if declaration.return_type:
            prompt_parts.append(f"- Return Type: {declaration.return_type}")

        prompt_parts.extend([
            "",
            "### Code:",
            "```typescript",
            request.context,
            "```",
        ])

        if request.verdict.verdict == Verdict.REGENERATE and declaration.doc:
            prompt_parts.extend([
                "",
                "### Current Documentation (the code has changed since it was written):",
                "```",
                declaration.doc.text,
                "```",
            ])

        prompt_parts.extend([
            "",
            "### Task:",
            KIND_GUIDANCE[declaration.kind],
            "- Start with a one-line summary sentence",
            "- Be concise and base the text on the actual implementation",
            "- Output only the comment text: no `/**`, no `*/`, no leading `*`, no code fences",
        ])

        return "\n".join(prompt_parts)


def clean_generated_text(raw: str) -> str:
    """Normalize backend output into insertable documentation text.

    Strips surrounding code fences and unwraps a complete ``/** ... */`` block.

    Args:
        raw: Raw backend output

    Returns:
        Cleaned documentation text

    Raises:
        InvalidOutputError: If the text is empty or would break the comment
    """
    text = raw.strip()

    lines = text.splitlines()
    if lines and lines[0].startswith("```"):
        lines = lines[1:]
    if lines and lines[-1].strip() == "```":
        lines = lines[:-1]
    text = "\n".join(lines).strip()

    if text.startswith("/**") and text.endswith("*/"):
        inner = text[3:-2].splitlines()
        text = "\n".join(_JSDOC_PREFIX.sub("", line).rstrip() for line in inner).strip()

    if not text:
        raise InvalidOutputError("empty output")
    if "*/" in text:
        raise InvalidOutputError("output contains a comment terminator")
    if text.startswith("/*"):
        raise InvalidOutputError("output starts an unterminated comment")

    return text


def _failure(
    declaration: Declaration,
    kind: GenerationErrorKind,
    attempts: int,
    message: str,
) -> GenerationFailure:
    return GenerationFailure(declaration=declaration, error_kind=kind, attempts=attempts, message=message)
