"""Question generation pipeline orchestrator.

This module provides the outbound ``generate()`` call, coordinating the
rate limiter, content normalizer, prompt compiler, model client, response
parser and question validator for one request.
"""

import logging
import time
import uuid
from typing import Optional

from .config import Settings, settings
from .content import ContentNormalizer
from .errors import ConfigurationError, QuizGenerationError
from .generation.parser import ResponseParser
from .generation.prompts import PromptCompiler
from .generation.validator import QuestionValidator
from .logging_config import generation_id_context
from .metrics import GenerationMetrics, get_metrics_tracker
from .models import (
    GenerationEstimate,
    GenerationOutcome,
    GenerationRequest,
    GenerationResult,
)
from .providers.base import BaseModelClient
from .providers.openai_provider import OpenAIClient
from .ratelimit.limiter import GenerationRateLimiter
from .ratelimit.storage import CounterStore, InMemoryCounterStore, RedisCounterStore

logger = logging.getLogger(__name__)


class QuestionGenerationPipeline:
    """Orchestrates one quiz generation request end to end.

    Stages run in a fixed order: configuration check, rate-limit check,
    content preparation, prompt compilation, model call, usage increment,
    response parsing and question validation. The first failing stage ends
    the run.
    """

    def __init__(
        self,
        client: Optional[BaseModelClient],
        rate_limiter: Optional[GenerationRateLimiter] = None,
        normalizer: Optional[ContentNormalizer] = None,
        compiler: Optional[PromptCompiler] = None,
        parser: Optional[ResponseParser] = None,
        validator: Optional[QuestionValidator] = None,
        metrics: Optional[GenerationMetrics] = None,
    ):
        """Initialize the pipeline.

        Args:
            client: Model client, or None when no API key is configured
            rate_limiter: Per-requester limiter (default: in-memory limiter)
            normalizer: Content normalizer (default: settings-based)
            compiler: Prompt compiler
            parser: Response parser
            validator: Question validator
            metrics: Metrics tracker (default: global tracker)
        """
        self.client = client
        self.rate_limiter = rate_limiter or GenerationRateLimiter()
        self.normalizer = normalizer or ContentNormalizer()
        self.compiler = compiler or PromptCompiler()
        self.parser = parser or ResponseParser()
        self.validator = validator or QuestionValidator()
        self.metrics = metrics or get_metrics_tracker()

    @classmethod
    def from_settings(
        cls, config: Optional[Settings] = None
    ) -> "QuestionGenerationPipeline":
        """Build a pipeline from configuration.

        Args:
            config: Settings to use (default: global settings)

        Returns:
            A pipeline with an OpenAI client (if a key is configured) and the
            configured rate-limit store
        """
        config = config or settings

        client: Optional[BaseModelClient] = None
        if config.openai_api_key:
            client = OpenAIClient(
                api_key=config.openai_api_key,
                model=config.openai_model,
                base_url=config.openai_base_url,
                timeout=config.api_timeout,
                max_completion_tokens=config.max_completion_tokens,
                temperature=config.temperature,
                max_retries=config.max_retries,
                retry_delay=config.retry_delay,
            )
        else:
            logger.warning("No OpenAI API key configured; generation will fail")

        store: CounterStore
        if config.rate_limit_storage == "redis":
            store = RedisCounterStore(redis_url=config.rate_limit_redis_url)
        else:
            store = InMemoryCounterStore()

        return cls(
            client=client,
            rate_limiter=GenerationRateLimiter(
                store=store,
                limit=config.rate_limit_per_hour,
                window=config.rate_limit_window,
            ),
            normalizer=ContentNormalizer(
                max_length=config.max_content_length,
                min_length=config.min_content_length,
            ),
        )

    def estimate(self, request: GenerationRequest) -> GenerationEstimate:
        """Estimate token usage for a request without calling the model."""
        return GenerationEstimate.for_content(
            request.content, request.count, self.normalizer.max_length
        )

    def generate(self, request: GenerationRequest) -> GenerationOutcome:
        """Generate quiz questions for a request.

        Expected failures (configuration, rate limit, content, model,
        parsing, validation) are returned as the outcome's error; this
        method does not raise for them.

        Args:
            request: Validated generation parameters

        Returns:
            GenerationOutcome holding a GenerationResult or the error
        """
        token = generation_id_context.set(uuid.uuid4().hex[:12])
        start = time.perf_counter()
        self.metrics.record_request()

        try:
            result = self._run(request)
        except QuizGenerationError as e:
            self.metrics.record_failure(e.code)
            logger.warning(
                f"Generation failed ({e.code}): {e.message}",
                extra={
                    "requester_id": request.requester_id,
                    "error_code": e.code,
                    "duration_ms": _elapsed_ms(start),
                },
            )
            return GenerationOutcome.failure(e)
        except Exception as e:
            logger.exception(f"Unexpected error during generation: {e}")
            error = QuizGenerationError(
                f"An unexpected error occurred: {e}",
                code="unexpected_error",
                data={"exception_type": type(e).__name__},
            )
            self.metrics.record_failure(error.code)
            return GenerationOutcome.failure(error)
        else:
            self.metrics.record_success(partial=result.partial_success)
            logger.info(
                f"Generated {result.valid_count}/{result.total_generated} valid questions",
                extra={
                    "requester_id": request.requester_id,
                    "duration_ms": _elapsed_ms(start),
                },
            )
            return GenerationOutcome.success(result)
        finally:
            generation_id_context.reset(token)

    def _run(self, request: GenerationRequest) -> GenerationResult:
        if self.client is None or not self.client.api_key:
            raise ConfigurationError(
                "OpenAI API key is not configured. Please add your API key in settings.",
                code="no_api_key",
            )

        if request.requester_id:
            self.rate_limiter.check(request.requester_id)

        content = self.normalizer.prepare(request.content, request.content_type)
        prompt = self.compiler.compile(content.text, request)

        logger.info(
            f"Requesting {request.count} questions from {self.client.model} "
            f"({content.char_count} chars of content)",
            extra={"requester_id": request.requester_id, "model": self.client.model},
        )
        response = self.client.invoke(prompt)

        # Only successful model calls count against the requester
        if request.requester_id:
            self.rate_limiter.increment(request.requester_id)

        self.metrics.record_token_usage(response.token_usage)

        raw_questions = self.parser.parse(response.content)
        report = self.validator.validate(raw_questions)
        self.metrics.record_validation(
            report.total_generated, report.valid_count, report.invalid_count
        )

        return GenerationResult(
            questions=report.questions,
            total_generated=report.total_generated,
            valid_count=report.valid_count,
            invalid_count=report.invalid_count,
            partial_success=report.partial_success,
            validation_errors=report.validation_errors,
            token_usage=response.token_usage,
            content_info=content.to_content_info(),
        )


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 1)
