"""
Lender Reply Tracker.

Email-reply triage pipeline for loan submissions that:
- Polls Gmail for lender replies to outbound submissions
- Matches replies to submissions (thread headers or sender + business name)
- Classifies replies as approval / decline / neutral with an LLM
- Records outcomes in PostgreSQL
"""
