# src/agents/llm_agent.py
from openai import OpenAI, OpenAIError, RateLimitError
from pydantic import ValidationError
from typing import List, Dict, Any, Optional
from src.config.settings import Settings
from src.exceptions import ClassifierFailure
from src.models.schemas import ClassificationResult
import json
import re
import time
import logging

logger = logging.getLogger(__name__)


class ChatAgent:
    """OpenAI Chatbot client."""

    def __init__(self, config: Settings):
        self.config = config
        self.client = OpenAI(
            api_key=config.openai_api_key,
            timeout=config.classifier_timeout_seconds
        )
        self.model = config.openai_llm_model

    def chat(self, messages: List[dict], json_mode: bool = False, temperature: Optional[float] = None) -> str:
        """
        Send a list of messages to the OpenAI chat model and get the response.
        Uses exponential backoff retry logic for rate limit errors.

        Args:
            messages: List of message dicts (e.g., [{"role": "user", "content": "Hello"}])
            json_mode: If True, ask the model for a JSON object response
            temperature: Optional sampling temperature

        Returns:
            The assistant's reply as a string.
        """
        max_retries = 5
        base_delay = 1.0  # Start with 1 second delay

        kwargs = {"model": self.model, "messages": messages}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        if temperature is not None:
            kwargs["temperature"] = temperature

        for attempt in range(max_retries):
            try:
                response = self.client.chat.completions.create(**kwargs)
                return response.choices[0].message.content
            except RateLimitError:
                if attempt == max_retries - 1:
                    # Last attempt, raise the error
                    raise

                # Calculate exponential backoff delay
                delay = base_delay * (2 ** attempt)
                logger.warning(f"Rate limit hit on chat completion. Retrying in {delay}s... (attempt {attempt + 1}/{max_retries})")
                time.sleep(delay)

    def label_cluster(self, feedback_texts: List[str], category: Optional[str] = None) -> str:
        """
        Generate a descriptive label for a cluster based on sample feedback texts.

        Args:
            feedback_texts: Sample user feedback from the cluster
            category: Shared feedback category of the cluster, if any

        Returns:
            A concise theme/label for the cluster
        """
        category_hint = f" All of them were classified as '{category}'." if category else ""
        prompt = f"""You are an expert product manager analyzing user feedback. Below are {len(feedback_texts)} sample comments from a group of related feedback.{category_hint}

            Generate a concise, descriptive label (2-5 words) that captures the main theme or issue.

            Sample feedback:
            {chr(10).join(f"{i+1}. {text[:200]}" for i, text in enumerate(feedback_texts))}

            Return only the label, no explanation:"""

        return (self.chat([{"role": "user", "content": prompt}], temperature=0.4) or "").strip().strip('"')


class FeedbackAnalyzer:
    """Classify inbound content as feedback using the OpenAI chat model."""

    SYSTEM_PROMPT = (
        "You are an expert feedback analyst. Always respond with valid JSON "
        "that matches the requested schema exactly."
    )

    REQUIRED_FIELDS = ("category", "confidence", "sentiment", "priority")

    def __init__(self, config: Settings, agent: Optional[ChatAgent] = None):
        """
        Initialize the feedback analyzer.

        Args:
            config: Settings object with OpenAI configuration
            agent: Optional preconstructed ChatAgent (one is built from config if None)
        """
        self.agent = agent or ChatAgent(config)

    def analyze(self, content: str, platform: str, context: Optional[Dict[str, Any]] = None) -> ClassificationResult:
        """
        Analyze a single piece of inbound content.

        Args:
            content: The content to analyze
            platform: Platform source (gmail, twitter, manual)
            context: Optional dict with subject/from/date

        Returns:
            Validated ClassificationResult

        Raises:
            ClassifierFailure: If the API call fails or the response is malformed
        """
        context = context or {}
        messages = [
            {"role": "system", "content": self.SYSTEM_PROMPT},
            {"role": "user", "content": self._build_prompt(content, platform, context)}
        ]

        try:
            response = self.agent.chat(messages, json_mode=True, temperature=0.3)
        except OpenAIError as e:
            raise ClassifierFailure(f"Classifier call failed: {e}") from e

        result = self._parse_response(response)
        result.platform_context = {"platform": platform, "metadata": context}

        logger.debug(f"Analysis completed for {platform} content with {result.confidence} confidence")
        return result

    def _build_prompt(self, content: str, platform: str, context: Dict[str, Any]) -> str:
        platform_context = f"Platform: {platform}"
        if context.get("subject"):
            platform_context += f"\nSubject: {context['subject']}"
        if context.get("from"):
            platform_context += f"\nFrom: {context['from']}"

        return f"""You are an advanced feedback analyst. Analyze the following user feedback and provide a comprehensive analysis.

            {platform_context}

            Feedback Content:
            "{content}"

            IMPORTANT: Be very strict about what constitutes genuine user feedback. The following are NOT feedback:
            - Marketing emails (newsletters, promotions, advertisements)
            - Automated notifications (password resets, confirmations, alerts)
            - Unsubscribe links and legal footers
            - Social media notifications (likes, follows, recommendations)
            - Spam or commercial messages
            - System-generated messages

            Only classify as feedback if the content contains:
            - Direct user opinions about a product/service
            - Bug reports or technical issues
            - Feature requests or suggestions
            - Complaints about specific functionality
            - Praise for specific features

            Return a JSON object with the following structure:
            {{
            "sentiment": "positive|negative|neutral",
            "priority": "low|medium|high|urgent",
            "category": "bug|feature|improvement|complaint|praise|question|suggestion|general",
            "confidence": 0.95,
            "keywords": ["keyword1", "keyword2"],
            "user_intent": "Brief description of what the user wants/needs",
            "business_impact": "low|medium|high",
            "urgency": "low|medium|high",
            "reasoning": "Brief explanation of the analysis",
            "suggested_action": "Recommended next steps"
            }}

            Guidelines:
            - Use "general" category for non-feedback content (marketing, notifications, spam)
            - Set low confidence (< 0.8) for unclear or non-feedback content
            - Be conservative - when in doubt, classify as "general"
            - Confidence must be between 0.0 and 1.0"""

    def _parse_response(self, response: Optional[str]) -> ClassificationResult:
        """Parse and validate the model's JSON reply."""
        if not response:
            raise ClassifierFailure("Classifier returned an empty response")

        # Remove markdown code blocks if present
        cleaned = re.sub(r'```json\s*|\s*```', '', response).strip()
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise ClassifierFailure(f"Classifier returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ClassifierFailure(f"Classifier returned {type(data).__name__}, expected an object")

        missing = [field for field in self.REQUIRED_FIELDS if data.get(field) is None]
        if missing:
            raise ClassifierFailure(f"Classifier response missing required fields: {', '.join(missing)}")

        try:
            data["confidence"] = min(max(float(data["confidence"]), 0.0), 1.0)
        except (TypeError, ValueError) as e:
            raise ClassifierFailure(f"Classifier returned non-numeric confidence: {data['confidence']!r}") from e

        try:
            return ClassificationResult.model_validate(data)
        except ValidationError as e:
            raise ClassifierFailure(f"Classifier response failed validation: {e}") from e
