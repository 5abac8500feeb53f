"""
Code-generation handoff.

Writes a composition manifest per analyzed video and keeps a registry index
of generated component identifiers, which a downstream code generator reads.
"""

import os
import json
import logging
from typing import List

from .base import CodeGeneratorAdapter
from ..exceptions import RegistryCorruptionError
from ..models import VideoAnalysisResult
from ..pipeline.prompt import collect_global_palette
from ..pipeline.util import component_name, ensure_dir

logger = logging.getLogger("clone_worker")

COMPOSITION_FILE = "composition.json"
REGISTRY_FILE = "registry.json"


class ManifestCodeGenerator(CodeGeneratorAdapter):
    """Manifest implementation of code generator adapter"""

    def __init__(self, codegen_dir: str):
        self.codegen_dir = codegen_dir

    @property
    def registry_path(self) -> str:
        return os.path.join(self.codegen_dir, REGISTRY_FILE)

    def generate(self, video_name: str, result: VideoAnalysisResult) -> str:
        component = component_name(video_name)
        component_dir = os.path.join(self.codegen_dir, component)
        ensure_dir(component_dir)

        metadata = result.metadata
        fps = round(metadata.fps)
        manifest = {
            'id': component,
            'source': os.path.basename(video_name),
            'width': metadata.width,
            'height': metadata.height,
            'fps': fps,
            'durationInFrames': max(1, round(metadata.duration * fps)),
            'palette': collect_global_palette(result.color_palettes),
            'prompt': result.generated_prompt,
        }

        manifest_path = os.path.join(component_dir, COMPOSITION_FILE)
        with open(manifest_path, 'w', encoding='utf-8') as f:
            json.dump(manifest, f, indent=2)

        self.register(component)
        logger.info(f"Composition manifest written for {component}: {manifest_path}")
        return manifest_path

    def read_registry(self) -> List[str]:
        """
        Load the list of registered component ids.

        Raises:
            RegistryCorruptionError: the index exists but is not a JSON list of strings
        """
        if not os.path.exists(self.registry_path):
            return []

        try:
            with open(self.registry_path, 'r', encoding='utf-8') as f:
                registry = json.load(f)
        except json.JSONDecodeError as e:
            raise RegistryCorruptionError(f"Registry {self.registry_path} is not valid JSON: {e}") from e

        if not isinstance(registry, list) or not all(isinstance(item, str) for item in registry):
            raise RegistryCorruptionError(f"Registry {self.registry_path} must be a JSON list of component ids")
        return registry

    def register(self, component: str) -> None:
        registry = self.read_registry()
        if component in registry:
            return

        registry.append(component)
        ensure_dir(self.codegen_dir)
        with open(self.registry_path, 'w', encoding='utf-8') as f:
            json.dump(registry, f, indent=2)
