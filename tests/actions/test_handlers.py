from __future__ import annotations

from datetime import datetime, timezone

import pytest

from inbox_triage.actions.executor import ActionExecutor, default_executor
from inbox_triage.actions.handlers import ActionContext, DraftReplyHandler, as_reply_subject, build_reply
from inbox_triage.errors import ProviderAuthError
from inbox_triage.models import Email, EmailAction, Label, MailAccount

ACCOUNT = MailAccount(email="me@example.com", display_name="Alex")


def _email(**overrides) -> Email:
    data = dict(
        id="m1",
        thread_id="t1",
        sender="Bob <bob@acme.example>",
        to=["me@example.com"],
        subject="Interview Termin",
        body="",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        headers={"Message-ID": "<m1@mail.example>"},
        label_ids=["INBOX", "UNREAD"],
    )
    data.update(overrides)
    return Email(**data)


def test_as_reply_subject_adds_re_prefix() -> None:
    assert as_reply_subject("Einladung zum Vorstellungsgespraech") == "Re: Einladung zum Vorstellungsgespraech"


def test_as_reply_subject_normalizes_existing_reply_prefixes() -> None:
    assert as_reply_subject("AW: Interview Termin") == "Re: Interview Termin"
    assert as_reply_subject("Re: Interview Termin") == "Re: Interview Termin"
    assert as_reply_subject("sv: Interview Termin") == "Re: Interview Termin"
    assert as_reply_subject("RE: AW: Re: Interview Termin") == "Re: Interview Termin"


def test_as_reply_subject_handles_empty_input() -> None:
    assert as_reply_subject("") == "Re: (no subject)"
    assert as_reply_subject("Re:") == "Re: (no subject)"


def test_build_reply_prefers_reply_to() -> None:
    email = _email(headers={"Message-ID": "<m1@mail.example>", "Reply-To": "jobs@acme.example"})
    msg = build_reply(email, ACCOUNT, "Thanks!")

    assert msg["From"] == "me@example.com"
    assert msg["To"] == "jobs@acme.example"
    assert msg["Subject"] == "Re: Interview Termin"
    assert msg["References"] == "<m1@mail.example>"


def test_draft_reply_requires_a_body(fake_gmail) -> None:
    with pytest.raises(ValueError):
        DraftReplyHandler().handle(fake_gmail, _email(), ActionContext(account=ACCOUNT, reply_body="  "))
    assert fake_gmail.drafts == []


def test_draft_reply_falls_back_to_suggested_response(fake_gmail) -> None:
    DraftReplyHandler().handle(fake_gmail, _email(suggested_response="Gern, bis Montag."), ActionContext(account=ACCOUNT))
    assert fake_gmail.drafts[0][1].get_content().strip() == "Gern, bis Montag."


def test_executor_archive_and_delete(fake_gmail) -> None:
    executor = default_executor()
    email = _email()
    context = ActionContext(account=ACCOUNT, reason="test")

    assert executor.run(fake_gmail, email, EmailAction.ARCHIVE, context)
    assert executor.run(fake_gmail, email, EmailAction.DELETE, context)

    assert fake_gmail.modify_calls == [("m1", [], ["INBOX"])]
    assert "INBOX" not in email.label_ids
    assert fake_gmail.trashed == ["m1"]


def test_executor_without_handler_returns_false(fake_gmail) -> None:
    assert not default_executor().run(fake_gmail, _email(), EmailAction.FORWARD, ActionContext(account=ACCOUNT))


def test_executor_error_modes(fake_gmail) -> None:
    context = ActionContext(account=ACCOUNT)
    lenient = default_executor()
    strict = default_executor(continue_on_error=False)

    assert not lenient.run(fake_gmail, _email(), EmailAction.REPLY, context)
    with pytest.raises(ValueError):
        strict.run(fake_gmail, _email(), EmailAction.REPLY, context)


def test_executor_always_propagates_auth_errors(fake_gmail) -> None:
    fake_gmail.fail_modify["IMPORTANT"] = ProviderAuthError("token revoked", status=401)
    executor = ActionExecutor(handlers=default_executor().handlers)

    with pytest.raises(ProviderAuthError):
        executor.run(fake_gmail, _email(), EmailAction.MARK_IMPORTANT, ActionContext(account=ACCOUNT))


def test_label_changes_keep_both_label_views_in_sync(fake_gmail) -> None:
    executor = default_executor()
    inbox = Label.from_provider("INBOX", "INBOX")
    email = _email(labels=[inbox])
    context = ActionContext(account=ACCOUNT)

    executor.run(fake_gmail, email, EmailAction.MARK_IMPORTANT, context)
    executor.run(fake_gmail, email, EmailAction.ARCHIVE, context)

    assert [lbl.provider_label_id for lbl in email.labels] == ["IMPORTANT"]
    assert "IMPORTANT" in email.label_ids
    assert "INBOX" not in email.label_ids
