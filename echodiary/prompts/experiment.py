"""
A/B comparison of prompt variations.
"""

import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from .builder import DiaryPromptOptions, build_diary_prompt


@dataclass
class ExperimentConfig:
    """
    Base options plus partial overrides to compare against them.

    Each override is a mapping of DiaryPromptOptions field names to values,
    merged over the base options.
    """
    base: DiaryPromptOptions
    variations: List[Dict[str, Any]] = field(default_factory=list)
    max_variations: Optional[int] = None
    template_name: Optional[str] = None


@dataclass
class PromptVariation:
    prompt: str
    parameters: DiaryPromptOptions
    version: str                        # "base", "variation-1", ...


@dataclass
class ExperimentResult:
    experiment_id: str
    timestamp: datetime
    base_prompt: str
    variations: List[PromptVariation]


class PromptExperiment:
    """Generates labeled prompt variations for side-by-side comparison."""

    def __init__(self, config: ExperimentConfig):
        self.config = config
        self.experiment_id = f"exp-{int(time.time() * 1000)}"

    def generate_variations(self) -> ExperimentResult:
        """
        Build the base prompt and one prompt per override.

        Returns:
            ExperimentResult whose variations start with the base prompt.
        """
        base_options = self.config.base
        base_prompt = build_diary_prompt(base_options, self.config.template_name)
        variations = [PromptVariation(prompt=base_prompt, parameters=base_options, version="base")]

        limit = self.config.max_variations
        if limit is None:
            limit = len(self.config.variations)
        overrides = self.config.variations[:max(0, limit)]

        for index, override in enumerate(overrides, start=1):
            parameters = replace(base_options, **override)
            variations.append(PromptVariation(
                prompt=build_diary_prompt(parameters, self.config.template_name),
                parameters=parameters,
                version=f"variation-{index}",
            ))

        return ExperimentResult(
            experiment_id=self.experiment_id,
            timestamp=datetime.now(),
            base_prompt=base_prompt,
            variations=variations,
        )


def create_experiment(config: ExperimentConfig) -> PromptExperiment:
    return PromptExperiment(config)
