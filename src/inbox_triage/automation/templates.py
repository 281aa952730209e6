from __future__ import annotations

import re
from typing import Mapping, Optional

from inbox_triage.models import Email, MailAccount
from inbox_triage.parsing.parser import sender_display_name

DEFAULT_REPLY_TEMPLATE = """Hi {sender_name},

Thank you for your email about {email_subject}.

{ai_response}

Best regards,
{my_name}"""

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def render_template(template: str, variables: Mapping[str, Optional[str]]) -> str:
    """
    Replace every {name} placeholder with its value.
    Single pass, so substituted values are never expanded again.
    Placeholders without a value render as "".
    """
    return _PLACEHOLDER.sub(lambda m: variables.get(m.group(1)) or "", template or "")


def template_variables(email: Email, account: MailAccount, my_name: str = "") -> dict:
    return {
        "sender_name": sender_display_name(email.sender),
        "email_subject": email.subject or "",
        "ai_response": email.suggested_response or "",
        "my_name": my_name or account.display_name or account.email.split("@", 1)[0],
    }
