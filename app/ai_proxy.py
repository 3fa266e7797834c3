"""
Client for the generative-AI proxy.

Request:  POST {prompt, files?: [{mimeType, data}], model}
Response: {candidates: [{content: {parts: [{text}]}}]}

A non-2xx response is a hard failure for that call. Retries are the
caller's business (see the caption fallback chain).
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from baratie.models import AttachedFile
from baratie.parsing import extract_json_object

logger = logging.getLogger(__name__)


class AIRequestError(Exception):
    """Raised when the AI proxy call fails (non-2xx or transport error)."""

    def __init__(self, status_code: Optional[int], body: str):
        self.status_code = status_code
        self.body = body
        label = f"HTTP {status_code}" if status_code is not None else "network error"
        super().__init__(f"AI request failed ({label}): {body[:200]}")


class MalformedResponseError(Exception):
    """Raised when a model reply holds no usable JSON object."""
    pass


def response_text(data: Dict[str, Any]) -> str:
    """candidates[0].content.parts[0].text, or "" if the shape is off."""
    try:
        return data["candidates"][0]["content"]["parts"][0].get("text") or ""
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""


class AIProxyClient:
    """Async client for the proxy; one httpx.AsyncClient per call."""

    def __init__(
        self,
        url: str,
        model: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.model = model
        self.timeout = timeout
        self._transport = transport

    async def generate(
        self,
        prompt: str,
        files: Optional[List[AttachedFile]] = None,
        model: Optional[str] = None,
    ) -> str:
        """
        Send one prompt (plus optional inline files) and return the reply text.

        Raises:
            AIRequestError: on non-2xx status or network failure
        """
        payload: Dict[str, Any] = {"prompt": prompt}
        if files:
            payload["files"] = [{"mimeType": f.mime_type, "data": f.data} for f in files]
        if model or self.model:
            payload["model"] = model or self.model

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise AIRequestError(None, str(e)) from e

        if response.is_error:
            raise AIRequestError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"AI proxy returned non-JSON body: {response.text[:200]}") from e
        return response_text(data)

    async def generate_json(
        self,
        prompt: str,
        files: Optional[List[AttachedFile]] = None,
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        generate() and scan the reply for the first JSON object.

        Raises:
            AIRequestError: see generate()
            MalformedResponseError: the reply contains no JSON object
        """
        text = await self.generate(prompt, files=files, model=model)
        result = extract_json_object(text)
        if result is None:
            logger.warning(f"No JSON object in model reply: {text[:200]!r}")
            raise MalformedResponseError("Model reply contained no JSON object")
        return result
