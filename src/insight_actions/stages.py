"""
Stage normalization for free-text deal stage suggestions.

The extractor suggests stages in its own words ("Sending the quote now",
"negotiating terms"). Deal.stage is a closed enum, so every suggestion is
mapped through normalize_stage() first:

1. Case-insensitive exact match against the enum values
2. First-match keyword containment over STAGE_KEYWORD_RULES, in order

A None result means "no stage_update", never a default stage.
"""

from .models.entities import DealStage

# Ordered: the first rule with a matching keyword wins.
STAGE_KEYWORD_RULES: tuple[tuple[tuple[str, ...], DealStage], ...] = (
    (('lead', 'prospect'), DealStage.LEAD),
    (('discovery', 'qualification', 'initial'), DealStage.DISCOVERY),
    (('qualified', 'opportunity'), DealStage.QUALIFIED),
    (('proposal', 'quote', 'draft'), DealStage.PROPOSAL_SENT),
    (('negotiat', 'contract', 'terms'), DealStage.NEGOTIATION),
    (('won', 'success'), DealStage.CLOSED_WON),
    (('lost', 'rejected'), DealStage.CLOSED_LOST),
)

# Stage progression used when inferring the next stage from a positive signal.
# Closed stages have no successor.
_PROGRESSION: dict[DealStage, DealStage] = {
    DealStage.LEAD: DealStage.DISCOVERY,
    DealStage.DISCOVERY: DealStage.QUALIFIED,
    DealStage.QUALIFIED: DealStage.PROPOSAL_SENT,
    DealStage.PROPOSAL_SENT: DealStage.NEGOTIATION,
    DealStage.NEGOTIATION: DealStage.CLOSED_WON,
}

_EXACT: dict[str, DealStage] = {stage.value.lower(): stage for stage in DealStage}


def normalize_stage(text: object) -> DealStage | None:
    """
    Map a free-text stage suggestion onto the closed DealStage enum.

    Args:
        text: Suggestion from the extractor (non-strings yield None)

    Returns:
        Matching DealStage, or None when nothing matches
    """
    if not isinstance(text, str):
        return None
    lowered = text.strip().lower()
    if not lowered:
        return None

    exact = _EXACT.get(lowered)
    if exact is not None:
        return exact

    for keywords, stage in STAGE_KEYWORD_RULES:
        if any(keyword in lowered for keyword in keywords):
            return stage
    return None


def next_stage(stage: DealStage | str | None) -> DealStage | None:
    """Successor of ``stage`` in the progression, or None for closed/unknown stages."""
    if stage is None:
        return None
    try:
        current = DealStage(stage)
    except ValueError:
        return None
    return _PROGRESSION.get(current)
