"""Reference data for compliance standards, requirement categories and evidence kinds.

Display names cover the standards shipped with the auditor workspace.
Unknown standards fall back to their identifier.

Evidence kind is derived from the file extension and only used for
classification and filtering; file contents are never inspected.
"""

from typing import Dict, FrozenSet

# Key: standard identifier as stored on requirements and evidence
STANDARD_DISPLAY_NAMES: Dict[str, str] = {
    "iso_9001": "ISO 9001 - Quality Management",
    "iso_14001": "ISO 14001 - Environmental Management",
    "ohsas_18001": "OHSAS 18001 - Occupational Health & Safety",
    "sa_8000": "SA 8000 - Social Accountability",
}

# Categories used to group requirements within a standard.
# Requirements may carry other categories; these are the ones the catalog knows about.
KNOWN_CATEGORIES: FrozenSet[str] = frozenset({
    "policy",
    "procedure",
    "record",
    "training",
    "monitoring",
})

# File extension -> evidence kind
KIND_EXTENSIONS: Dict[str, FrozenSet[str]] = {
    "image": frozenset({"jpg", "jpeg", "png", "gif"}),
    "document": frozenset({"pdf", "doc", "docx"}),
    "video": frozenset({"mp4", "avi", "mov"}),
    "audio": frozenset({"mp3", "wav", "aac"}),
}

# Attributes applied to links created by the auto-link pass
AUTO_LINK_STRENGTH = 4
AUTO_LINK_TAG = "auto-linked"
AUTO_LINK_DESCRIPTION = "Auto-linked based on metadata"

# Derived status thresholds (link count per evidence item)
LINKED_MIN_COUNT = 1
VERIFIED_MIN_COUNT = 3


def standard_display_name(standard: str) -> str:
    """Human-readable name for a standard identifier."""
    return STANDARD_DISPLAY_NAMES.get(standard, standard)
