from __future__ import annotations

import logging

from nexaproc.extensions import db
from nexaproc.notifications import MAILER_EXTENSION_KEY, notify, privileged_emails
from nexaproc.workflow import create_quotation


def test_privileged_emails_skip_inactive_and_excluded(users):
    users.manager.is_active = False
    db.session.commit()
    assert privileged_emails() == [users.superadmin.email]
    assert privileged_emails(exclude="ROOT@rgi.test") == []


def test_recipients_are_deduplicated(app, mailer):
    assert notify(["a@rgi.test", "A@rgi.test ", None, "b@rgi.test"], "Hello", {"event": "test"})
    assert mailer.sent[0].recipients == ["a@rgi.test", "b@rgi.test"]


def test_nothing_is_sent_without_recipients(app, mailer):
    assert notify([None, ""], "Hello", {"event": "test"}) is False
    assert mailer.sent == []


def test_mailer_failure_never_breaks_the_workflow(app, users, caplog):
    def broken_mailer(recipients, subject, context):
        raise ConnectionError("SMTP down")

    app.extensions[MAILER_EXTENSION_KEY] = broken_mailer

    with caplog.at_level(logging.ERROR, logger="nexaproc"):
        quotation = create_quotation(users.staff, {"goods": [{"name": "Valve", "qty": 1, "price": 1}]})
        db.session.commit()

    assert quotation.id is not None
    assert quotation.status == "waiting"
    assert "SMTP down" in caplog.text
