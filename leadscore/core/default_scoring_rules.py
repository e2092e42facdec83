from typing import Any, Dict, List


DEFAULT_SCORING_MODEL: Dict[str, Any] = {
    "name": "Default Engagement Model",
    "description": "Baseline engagement scoring applied to every contact.",
    "is_active": True,
    "is_default": True,
    "qualified_threshold": 50,
    "customer_threshold": 100,
}


DEFAULT_SCORING_RULES: List[Dict[str, Any]] = [
    {
        "name": "Email Opened",
        "event_type": "EMAIL_OPENED",
        "points": 5,
        "cooldown_hours": 24,
        "decay_days": 30,
    },
    {
        "name": "Email Link Clicked",
        "event_type": "EMAIL_CLICKED",
        "points": 10,
        "cooldown_hours": 24,
        "decay_days": 30,
    },
    {
        "name": "Email Replied",
        "event_type": "EMAIL_REPLIED",
        "points": 15,
        "decay_days": 60,
    },
    {
        "name": "Meeting Booked",
        "event_type": "MEETING_BOOKED",
        "points": 30,
    },
    {
        "name": "Meeting Attended",
        "event_type": "MEETING_ATTENDED",
        "points": 25,
    },
    {
        "name": "Call Answered",
        "event_type": "CALL_ANSWERED",
        "points": 5,
        "cooldown_hours": 4,
    },
    {
        "name": "Positive Call Outcome",
        "event_type": "CALL_POSITIVE_OUTCOME",
        "points": 15,
    },
    {
        "name": "Form Submitted",
        "event_type": "FORM_SUBMITTED",
        "points": 10,
        "max_occurrences": 5,
    },
    {
        "name": "Pricing Page Visited",
        "event_type": "PAGE_VISITED",
        "points": 3,
        "cooldown_hours": 12,
        "decay_days": 14,
        "conditions": [
            {"field": "related_type", "operator": "equals", "value": "pricing"},
        ],
    },
    {
        "name": "Document Viewed",
        "event_type": "DOCUMENT_VIEWED",
        "points": 5,
        "max_occurrences": 10,
        "decay_days": 30,
    },
    {
        "name": "Demo Requested",
        "event_type": "DEMO_REQUESTED",
        "points": 40,
        "max_occurrences": 1,
    },
    {
        "name": "Trial Started",
        "event_type": "TRIAL_STARTED",
        "points": 35,
        "max_occurrences": 1,
    },
    {
        "name": "Quote Requested",
        "event_type": "QUOTE_REQUESTED",
        "points": 30,
    },
    {
        "name": "Deal Created",
        "event_type": "DEAL_CREATED",
        "points": 20,
    },
    {
        "name": "Deal Stage Advanced",
        "event_type": "STAGE_ADVANCED",
        "points": 10,
    },
]
