"""
Bedrock Text Generation
Single-prompt chat model calls shared by SQL generation and result analysis
"""

import logging
from typing import Any, Optional, Protocol

from langchain_core.messages import HumanMessage

from wafbot.core.config import settings

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> Any:
        """Return the raw model content for a single user prompt"""
        ...


def get_llm(model_id: Optional[str] = None, region: Optional[str] = None, max_tokens: Optional[int] = None):
    """Initialize the Bedrock chat model"""
    from langchain_aws import ChatBedrock

    model_name = model_id or settings.BEDROCK_MODEL_ID
    logger.debug(f"Initializing AWS Bedrock LLM ({model_name})")
    return ChatBedrock(
        model_id=model_name,
        region_name=region or settings.BEDROCK_REGION,
        model_kwargs={
            "temperature": 0.0,
            "max_tokens": max_tokens or settings.BEDROCK_MAX_TOKENS,
        },
    )


def content_text(content: Any) -> Optional[str]:
    """Chat model content is a string or a list of content blocks"""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts) if parts else None
    return None


class BedrockTextGenerator:
    """TextGenerator backed by langchain_aws.ChatBedrock"""

    def __init__(self, llm: Any = None):
        self._llm = llm

    @property
    def llm(self):
        if self._llm is None:
            self._llm = get_llm()
        return self._llm

    async def generate(self, prompt: str) -> Any:
        logger.info(f"Calling LLM: bedrock/{settings.BEDROCK_MODEL_ID}")
        response = await self.llm.ainvoke([HumanMessage(content=prompt)])
        return response.content
