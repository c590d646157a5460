from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest

from capex.core.storage.repository import Collection
from capex.domain.investments import service as investments
from capex.domain.notifications import service as notifications
from capex.domain.notifications.enums import NotificationPriority, NotificationType
from capex.shared.exceptions import NotFound
from conftest import Org, purchase_payload


def _approved_purchase(org: Org, due: date) -> uuid.UUID:
    investment, _ = investments.create_investment(
        org.repo, actor=org.actor("md_a"), payload=purchase_payload(org.company_a, due=due)
    )
    investments.submit(org.repo, actor=org.actor("md_a"), investment_id=investment.id, today=date(2026, 1, 2))
    investments.approve(org.repo, actor=org.actor("board"), investment_id=investment.id, today=date(2026, 1, 3))
    return investment.id


def _of_type(org: Org, user: str, kind: NotificationType) -> list[dict]:
    return [n for n in notifications.list_for_user(org.repo, org.users[user]) if n["type"] == kind.value]


def test_daily_check_due_soon_and_dedupe(org: Org):
    _approved_purchase(org, due=date(2026, 3, 8))

    created = notifications.check_daily_notifications(org.repo, date(2026, 3, 1))
    assert {n["user_id"] for n in created} == {org.users["cm_a"], org.users["md_a"]}
    assert all(n["type"] == NotificationType.PAYMENT_DUE_SOON.value for n in created)

    # same day again: nothing new
    assert notifications.check_daily_notifications(org.repo, date(2026, 3, 1)) == []


def test_daily_check_overdue_repeats_daily(org: Org):
    _approved_purchase(org, due=date(2026, 3, 1))

    first = notifications.check_daily_notifications(org.repo, date(2026, 3, 3))
    second = notifications.check_daily_notifications(org.repo, date(2026, 3, 4))

    overdue_first = [n for n in first if n["type"] == NotificationType.PAYMENT_OVERDUE.value]
    overdue_second = [n for n in second if n["type"] == NotificationType.PAYMENT_OVERDUE.value]
    assert {n["user_id"] for n in overdue_first} == {org.users["cm_a"], org.users["md_a"], org.users["cfo"]}
    assert len(overdue_second) == len(overdue_first)


def test_daily_check_monthly_report(org: Org):
    created = notifications.check_daily_notifications(org.repo, date(2026, 4, 5))
    recipients = {n["user_id"] for n in created if n["type"] == NotificationType.MONTHLY_REPORT_DUE.value}
    assert recipients == {org.users[u] for u in ("md_a", "cm_a", "md_b", "cm_b")}


def test_group_reminder_days_setting(org: Org):
    org.repo.update(Collection.GROUPS, org.group_id, {"payment_reminder_days": 3})
    org.repo.commit()
    _approved_purchase(org, due=date(2026, 3, 10))

    assert notifications.check_daily_notifications(org.repo, date(2026, 3, 3)) == []
    # the 5th is also the monthly report deadline; only reminders count here
    deadline_day = notifications.check_daily_notifications(org.repo, date(2026, 3, 5))
    assert [n for n in deadline_day if n["type"] == NotificationType.PAYMENT_DUE_SOON.value] == []
    due_soon = notifications.check_daily_notifications(org.repo, date(2026, 3, 7))
    assert {n["type"] for n in due_soon} == {NotificationType.PAYMENT_DUE_SOON.value}
    assert {n["user_id"] for n in due_soon} == {org.users["cm_a"], org.users["md_a"]}


def test_workflow_events_notify(org: Org):
    _approved_purchase(org, due=date(2026, 3, 8))

    assert len(_of_type(org, "board", NotificationType.INVESTMENT_SUBMITTED)) == 1
    assert len(_of_type(org, "md_a", NotificationType.INVESTMENT_APPROVED)) == 1


def test_mark_read_and_counts(org: Org):
    _approved_purchase(org, due=date(2026, 3, 8))
    user = org.users["md_a"]
    [row] = notifications.list_for_user(org.repo, user)

    assert notifications.unread_count(org.repo, user) == 1
    updated = notifications.mark_as_read(org.repo, row["id"], user_id=user)
    assert updated["read"] is True
    assert updated["read_at"] is not None
    assert notifications.unread_count(org.repo, user) == 0
    assert notifications.list_for_user(org.repo, user, unread_only=True) == []


def test_mark_read_of_someone_elses_notification(org: Org):
    _approved_purchase(org, due=date(2026, 3, 8))
    [row] = notifications.list_for_user(org.repo, org.users["md_a"])

    with pytest.raises(NotFound):
        notifications.mark_as_read(org.repo, row["id"], user_id=org.users["cm_a"])


def test_mark_all_and_clear(org: Org):
    _approved_purchase(org, due=date(2026, 3, 8))
    notifications.check_daily_notifications(org.repo, date(2026, 3, 1))
    user = org.users["md_a"]

    assert notifications.mark_all_as_read(org.repo, user) == 2
    assert notifications.unread_count(org.repo, user) == 0
    assert notifications.clear_notifications(org.repo, user) == 2
    assert notifications.list_for_user(org.repo, user) == []


def test_delete_old_only_removes_read_ones(org: Org):
    _approved_purchase(org, due=date(2026, 3, 8))
    user = org.users["md_a"]
    [row] = notifications.list_for_user(org.repo, user)
    notifications.check_daily_notifications(org.repo, date(2026, 3, 1))

    long_ago = datetime(2026, 1, 1, tzinfo=timezone.utc)
    notifications.mark_as_read(org.repo, row["id"], user_id=user, now=long_ago)

    deleted = notifications.delete_old_notifications(org.repo, now=long_ago + timedelta(days=31))
    assert deleted == 1
    remaining = notifications.list_for_user(org.repo, user)
    assert len(remaining) == 1
    assert remaining[0]["read"] is False


def test_sort_by_priority():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    rows = [
        {"priority": NotificationPriority.LOW.value, "created_at": now},
        {"priority": NotificationPriority.URGENT.value, "created_at": now - timedelta(days=1)},
        {"priority": NotificationPriority.HIGH.value, "created_at": now - timedelta(days=2)},
        {"priority": NotificationPriority.HIGH.value, "created_at": now},
    ]
    ordered = notifications.sort_by_priority(rows)
    assert [r["priority"] for r in ordered] == ["URGENT", "HIGH", "HIGH", "LOW"]
    assert ordered[1]["created_at"] == now
