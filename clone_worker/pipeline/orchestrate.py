import json
import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI
from pydantic import BaseModel, Field

from ..models import VideoMetadata

logger = logging.getLogger("clone_worker")


class OrchestrationPayload(BaseModel):
    """Structured content generated for a template built from the analysis"""
    script: str = Field(description="Narration script for the template")
    visual_cues: List[str] = Field(description="Ordered list of on-screen beats")
    voiceover: str = Field(description="Suggested voice style for narration")
    music_mood: str = Field(description="Suggested background music mood")


def _strict_schema() -> Dict[str, Any]:
    """JSON schema for structured outputs with additionalProperties: false"""
    base_schema = OrchestrationPayload.model_json_schema()

    def add_additional_properties_false(schema_part):
        if isinstance(schema_part, dict):
            if schema_part.get("type") == "object":
                schema_part["additionalProperties"] = False
            for value in schema_part.values():
                add_additional_properties_false(value)
        elif isinstance(schema_part, list):
            for item in schema_part:
                add_additional_properties_false(item)

    add_additional_properties_false(base_schema)
    return base_schema


class ContentOrchestrator:
    """Optional stage that asks an LLM for template content based on the replication prompt"""

    def __init__(self, model: str = "gpt-4o-mini", client: Optional[OpenAI] = None):
        self.model = model
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI()
        return self._client

    def synthesize(self, prompt: str, metadata: VideoMetadata) -> Optional[Dict[str, Any]]:
        """
        Generate the orchestration payload for an analyzed video.

        Returns:
            Payload dictionary, or None when generation failed
        """
        try:
            logger.info(f"Synthesizing orchestration content with {self.model}")

            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": "You write short scripts and beat sheets for animated video templates."
                    },
                    {
                        "role": "user",
                        "content": (
                            f"The template runs {metadata.duration:.1f} seconds at "
                            f"{metadata.width}x{metadata.height}. Based on this breakdown request, "
                            f"propose narration, visual beats, a voice style and a music mood.\n\n{prompt}"
                        )
                    }
                ],
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": "orchestration_payload",
                        "schema": _strict_schema(),
                        "strict": True
                    }
                },
                temperature=0.4
            )

            content = response.choices[0].message.content
            payload = OrchestrationPayload(**json.loads(content))

            logger.info(f"Orchestration produced {len(payload.visual_cues)} visual cues")
            return {
                'script': payload.script,
                'visualCues': payload.visual_cues,
                'voiceover': payload.voiceover,
                'musicMood': payload.music_mood,
            }

        except Exception as e:
            logger.error(f"Error synthesizing orchestration content: {e}")
            return None
