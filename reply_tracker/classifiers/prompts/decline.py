"""
Prompt for lender reply classification.
"""

PROMPT = '''Classify this lender reply:

"""
{content}
"""

Respond in strict JSON with exactly these fields and nothing else:
{{
  "classification": "APPROVAL" | "DECLINE" | "NEUTRAL",
  "offer": "...",             // required if APPROVAL, otherwise null
  "decline_reason": "...",    // required if DECLINE, otherwise null
  "lender_name": "{lender_name}"
}}

APPROVAL: the lender approves the deal or makes an offer (describe the offer terms).
DECLINE: the lender declines the deal (state the reason given).
NEUTRAL: anything else (questions, requests for documents, acknowledgements).'''


def build_prompt(content: str, lender_name: str) -> str:
    """Embed a reply in the classification instruction."""
    return PROMPT.format(content=content, lender_name=lender_name or "Unknown")
