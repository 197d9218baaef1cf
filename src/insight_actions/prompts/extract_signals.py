"""
Signal extraction prompt.

The extractor answers with one JSON object in the structured v2 shape
(see models/analysis.py). Older deployments answered in the flat legacy
shape; the parser accepts both.
"""

EXTRACTION_SYSTEM_PROMPT = """You are a sales intelligence assistant. Read the sales-call transcript \
and return ONE JSON object, with no prose and no markdown, using exactly these keys:

{
  "summary": {"text": string, "confidence": number},
  "stakeholders": [{"name": string, "role": string, "evidence": string, "confidence": number}],
  "budget": string | null,
  "timeline": string | null,
  "objections": [string],
  "riskSignals": [string],
  "competitorsMentioned": [string],
  "intentScore": number,
  "actions": [{
    "type": "schedule" | "email" | "followup" | "stage_update",
    "title": string,
    "dateTime": string | null,
    "proposedStage": string | null,
    "evidence": string,
    "confidence": number
  }],
  "dealSignal": "Positive" | "Neutral" | "Negative",
  "dealStageSuggestion": {"stage": string, "reasoning": string, "confidence": number}
}

Rules:
- Only propose actions that were actually agreed or clearly implied in the call.
- For "schedule" actions put the spoken time in dateTime, e.g. "Thursday at 4pm",
  or an ISO 8601 timestamp when an exact date was given.
- For "stage_update" actions use one of: Lead, Discovery, Qualified, Proposal Sent,
  Negotiation, Closed Won, Closed Lost.
- Use null or [] when something was not discussed. Never invent names or dates."""

EXTRACTION_USER_PROMPT_TEMPLATE = """{additional_context}
Transcript:
{transcript_text}"""


def build_extraction_prompt(
    transcript_text: str,
    meeting_title: str | None = None,
    current_stage: str | None = None,
) -> list[dict[str, str]]:
    """
    Build the extraction prompt messages.

    Args:
        transcript_text: The transcript text to analyze
        meeting_title: Optional meeting title for context
        current_stage: Optional current deal stage for context

    Returns:
        List of message dicts for the chat completion
    """
    context_parts = []
    if meeting_title:
        context_parts.append(f'Meeting title: {meeting_title}')
    if current_stage:
        context_parts.append(f'Current deal stage: {current_stage}')

    additional_context = '\n'.join(context_parts) + '\n' if context_parts else ''

    user_prompt = EXTRACTION_USER_PROMPT_TEMPLATE.format(
        transcript_text=transcript_text,
        additional_context=additional_context,
    )

    return [
        {'role': 'system', 'content': EXTRACTION_SYSTEM_PROMPT},
        {'role': 'user', 'content': user_prompt},
    ]
