from typing import Protocol


class LLMClient(Protocol):
    def generate_json(self, prompt: str, context: str) -> str:
        """Return the model's JSON text for ``prompt`` grounded on ``context``."""
        ...
