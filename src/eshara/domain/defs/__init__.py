"""Domain definition exports."""

from .story_def import (
    BranchConditionDef,
    BranchDef,
    DelayDef,
    EffectsDef,
    EndingDef,
    GlobalOverrideDef,
    LocalizedText,
    StoryChoiceDef,
    StoryGraph,
    StoryMetadataDef,
    StoryNodeDef,
)

__all__ = [
    "BranchConditionDef",
    "BranchDef",
    "DelayDef",
    "EffectsDef",
    "EndingDef",
    "GlobalOverrideDef",
    "LocalizedText",
    "StoryChoiceDef",
    "StoryGraph",
    "StoryMetadataDef",
    "StoryNodeDef",
]
