import httpx

from .base import LLMClient

SYSTEM_PROMPT = "You are a strict JSON generator. Output JSON only, with no extra text or reasoning."


def normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip().rstrip("/")
    if not cleaned:
        return ""
    if cleaned.endswith("/v1"):
        return cleaned
    return f"{cleaned}/v1"


class RealLLMClient(LLMClient):
    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 30.0,
        max_tokens: int = 4096,
    ):
        self.base_url = normalize_base_url(base_url)
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens

    def build_payload(self, prompt: str, context: str) -> dict:
        cleaned = (context or "").strip()
        user_prompt = f"{prompt}\n\nDocument:\n{cleaned}" if cleaned else prompt
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": 0.0,
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
        }

    def generate_json(self, prompt: str, context: str) -> str:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        with httpx.Client(timeout=self.timeout) as client:
            response = client.post(
                f"{self.base_url}/chat/completions",
                json=self.build_payload(prompt, context),
                headers=headers,
            )
        response.raise_for_status()
        data = response.json()
        choices = data.get("choices") or []
        if not choices:
            raise RuntimeError("LLM response missing choices.")
        message = choices[0].get("message") or {}
        content = (message.get("content") or "").strip()
        if not content:
            # Reasoning models may leave the JSON only in reasoning_content.
            reasoning = (message.get("reasoning_content") or "").strip()
            start = reasoning.find("{")
            end = reasoning.rfind("}")
            if start != -1 and end > start:
                content = reasoning[start : end + 1]
        if not content:
            raise RuntimeError("LLM response missing content.")
        return content
