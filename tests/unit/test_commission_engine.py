"""
Unit tests for the subscription commission engine.

Tests cover:
- Activation gate (inactive status, renewals)
- Crediting the upline per compensation plan
- Inactive ancestors and full levels
- Per-level failure isolation (lookups, ledger writes, duplicates)
- Fatal configuration errors
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from referral_network.domain.network import (
    SkippedLevel,
    SkipReason,
    SubscriptionRecord,
)
from referral_network.models.enums import AuditEventType, AuditSeverity
from referral_network.services.network.commission_engine import (
    SubscriptionCommissionService,
)
from referral_network.services.network.compensation import (
    CompensationPlan,
    CompensationRule,
    StaticCompensationPlanProvider,
)
from referral_network.utils.exceptions import ConfigurationError


def _db_error():
    return OperationalError("SELECT 1", {}, Exception("connection lost"))


@pytest.fixture
def service(mock_session, compensation_plan, mock_audit_sink, network):
    """Commission service wired to the fake network."""
    svc = SubscriptionCommissionService(
        mock_session,
        plan_provider=StaticCompensationPlanProvider(compensation_plan),
        audit_sink=mock_audit_sink,
    )
    network.wire(svc)
    return svc


class TestActivationGate:
    """Only fresh activations produce commissions."""

    @pytest.mark.asyncio
    async def test_unpaid_subscription_yields_nothing(self, service, network):
        """Non-active status returns an empty list without walking."""
        network.chain("user1", "sponsor1", "sponsor2")
        subscription = SubscriptionRecord(
            id="sub_123", user_id="user1", status="unpaid"
        )

        records = await service.process_subscription_commission(subscription)

        assert records == []
        network.member_repo.get_sponsor_id.assert_not_awaited()
        network.commission_repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_previously_active_yields_nothing(
        self, service, network, active_subscription
    ):
        """Renewal of an already active subscription is not re-credited."""
        network.chain("user1", "sponsor1", "sponsor2")

        records = await service.process_subscription_commission(
            active_subscription, was_previously_active=True
        )

        assert records == []
        network.commission_repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_call_after_activation_adds_nothing(
        self, service, network, active_subscription
    ):
        """Replaying with was_previously_active=True creates no new records."""
        network.chain("user1", "sponsor1", "sponsor2")

        first = await service.process_subscription_commission(
            active_subscription
        )
        second = await service.process_subscription_commission(
            active_subscription, was_previously_active=True
        )

        assert len(first) == 2
        assert second == []
        assert network.commission_repo.create.await_count == 2


class TestUplineCrediting:
    """Commissions follow the compensation plan up the chain."""

    @pytest.mark.asyncio
    async def test_two_level_chain_credits_both_sponsors(
        self, service, network, active_subscription
    ):
        """user1 -> sponsor1 -> sponsor2 credits 1500 and 1000 cents."""
        network.chain("user1", "sponsor1", "sponsor2")

        records = await service.process_subscription_commission(
            active_subscription
        )

        assert len(records) == 2
        assert records[0].beneficiary_user_id == "sponsor1"
        assert records[0].source_member_id == "user1"
        assert records[0].level == 1
        assert records[0].amount_cents == 1500
        assert records[0].currency == "USD"
        assert records[1].beneficiary_user_id == "sponsor2"
        assert records[1].level == 2
        assert records[1].amount_cents == 1000

    @pytest.mark.asyncio
    async def test_ledger_rows_carry_activation_key(
        self, service, network, active_subscription
    ):
        """Each insert carries the subscription and activation identity."""
        network.chain("user1", "sponsor1")

        await service.process_subscription_commission(active_subscription)

        kwargs = network.commission_repo.create.await_args.kwargs
        assert kwargs["user_id"] == "sponsor1"
        assert kwargs["member_id"] == "user1"
        assert kwargs["subscription_id"] == "sub_123"
        assert kwargs["activation_key"] == active_subscription.activation_key
        assert kwargs["commission_type"] == "subscription_payment"

    @pytest.mark.asyncio
    async def test_each_level_committed_separately(
        self, service, network, active_subscription, mock_session
    ):
        """One commit per credited level."""
        network.chain("user1", "sponsor1", "sponsor2")

        await service.process_subscription_commission(active_subscription)

        assert mock_session.commit.await_count == 2

    @pytest.mark.asyncio
    async def test_inactive_level2_sponsor_is_skipped(
        self, service, network, active_subscription
    ):
        """Only level 1 is credited when sponsor2 is unpaid."""
        network.chain("user1", "sponsor1", "sponsor2")
        network.statuses["sponsor2"] = "unpaid"

        result = await service.process_activation(active_subscription)

        assert [r.beneficiary_user_id for r in result.records] == ["sponsor1"]
        assert result.skipped[0].ancestor_id == "sponsor2"
        assert result.skipped[0].reason == SkipReason.INACTIVE

    @pytest.mark.asyncio
    async def test_ancestor_without_subscription_is_skipped(
        self, service, network, active_subscription
    ):
        """Missing subscription counts as inactive."""
        network.chain("user1", "sponsor1")
        network.statuses["sponsor1"] = None

        records = await service.process_subscription_commission(
            active_subscription
        )

        assert records == []

    @pytest.mark.asyncio
    async def test_full_level1_sponsor_is_skipped(
        self, service, network, active_subscription
    ):
        """sponsor1 at capacity yields only the level 2 commission."""
        network.chain("user1", "sponsor1", "sponsor2")
        network.active_counts[("sponsor1", 1)] = 5

        result = await service.process_activation(active_subscription)

        assert len(result.records) == 1
        assert result.records[0].beneficiary_user_id == "sponsor2"
        assert result.records[0].level == 2
        assert result.skipped[0].reason == SkipReason.CAPACITY_REACHED

    @pytest.mark.asyncio
    async def test_capacity_count_excludes_source_member(
        self, service, network, active_subscription
    ):
        """The member being credited for is left out of the count."""
        network.chain("user1", "sponsor1")

        await service.process_subscription_commission(active_subscription)

        network.member_repo.count_active_members_at_level.assert_awaited_with(
            "sponsor1", 1, exclude_member_id="user1"
        )
        network.member_repo.lock_member.assert_awaited_with("sponsor1")

    @pytest.mark.asyncio
    async def test_one_below_capacity_is_credited(
        self, service, network, active_subscription
    ):
        """Four active members out of five still leave room."""
        network.chain("user1", "sponsor1")
        network.active_counts[("sponsor1", 1)] = 4

        records = await service.process_subscription_commission(
            active_subscription
        )

        assert len(records) == 1

    @pytest.mark.asyncio
    async def test_uncapped_level_skips_capacity_count(
        self, mock_session, network, active_subscription
    ):
        """max_members 0 means no capacity check."""
        plan = CompensationPlan.from_rules(
            [CompensationRule(level=1, max_members=0, commission_amount_cents=700)],
            "USD",
        )
        svc = SubscriptionCommissionService(
            mock_session, plan_provider=StaticCompensationPlanProvider(plan)
        )
        network.wire(svc)
        network.chain("user1", "sponsor1")

        records = await svc.process_subscription_commission(
            active_subscription
        )

        assert records[0].amount_cents == 700
        network.member_repo.count_active_members_at_level.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_level_without_amount_is_not_configured(
        self, service, network, active_subscription
    ):
        """Level 3 has capacity but no amount; it is skipped."""
        network.chain("user1", "sponsor1", "sponsor2", "sponsor3")

        result = await service.process_activation(active_subscription)

        assert len(result.records) == 2
        assert result.levels_walked == 3
        assert result.skipped == [
            SkippedLevel(3, "sponsor3", SkipReason.NOT_CONFIGURED)
        ]
        assert result.total_cents == 2500

    @pytest.mark.asyncio
    async def test_walk_stops_at_plan_depth(
        self, service, network, active_subscription
    ):
        """Ancestors above the deepest configured level are not visited."""
        network.chain("user1", "s1", "s2", "s3", "s4", "s5")

        result = await service.process_activation(active_subscription)

        assert result.levels_walked == 3
        visited = [
            c.args[0] for c in network.member_repo.get_sponsor_id.await_args_list
        ]
        assert "s3" not in visited

    @pytest.mark.asyncio
    async def test_root_member_yields_nothing(
        self, service, network, active_subscription
    ):
        """A member without sponsor produces no commissions."""
        result = await service.process_activation(active_subscription)

        assert result.records == []
        assert result.levels_walked == 0

    @pytest.mark.asyncio
    async def test_loop_in_upline_stops_walk(
        self, service, network, active_subscription, mock_audit_sink
    ):
        """A repeated ancestor ends the walk and is audited."""
        network.sponsors.update({"user1": "a", "a": "b", "b": "a"})
        network.statuses.update({"a": "active", "b": "active"})

        result = await service.process_activation(active_subscription)

        assert [r.beneficiary_user_id for r in result.records] == ["a", "b"]
        assert result.levels_walked == 2
        event = mock_audit_sink.record.await_args.args
        assert event[0] == AuditEventType.CORRUPTED_CHAIN


class TestFailureIsolation:
    """A failure at one level never blocks the others."""

    @pytest.mark.asyncio
    async def test_status_lookup_failure_skips_level(
        self, service, network, active_subscription, mock_audit_sink, mock_session
    ):
        """Lookup error for sponsor1 still credits sponsor2."""
        network.chain("user1", "sponsor1", "sponsor2")

        def get_status(user_id):
            if user_id == "sponsor1":
                raise _db_error()
            return "active"

        network.subscription_repo.get_status.side_effect = get_status

        result = await service.process_activation(active_subscription)

        assert [r.beneficiary_user_id for r in result.records] == ["sponsor2"]
        assert result.skipped[0].reason == SkipReason.LOOKUP_FAILED
        mock_session.rollback.assert_awaited()
        event_type, severity = mock_audit_sink.record.await_args_list[0].args[:2]
        assert event_type == AuditEventType.COMMISSION_ELIGIBILITY_LOOKUP_FAILED
        assert severity == AuditSeverity.WARNING

    @pytest.mark.asyncio
    async def test_capacity_lookup_failure_skips_level(
        self, service, network, active_subscription
    ):
        """Capacity count errors are treated like status errors."""
        network.chain("user1", "sponsor1", "sponsor2")
        network.member_repo.count_active_members_at_level.side_effect = [
            _db_error(),
            0,
        ]

        result = await service.process_activation(active_subscription)

        assert [r.level for r in result.records] == [2]
        assert result.skipped[0].reason == SkipReason.LOOKUP_FAILED

    @pytest.mark.asyncio
    async def test_ledger_failure_skips_level(
        self, service, network, active_subscription, mock_audit_sink
    ):
        """A failed insert for sponsor1 is audited; sponsor2 is credited."""
        network.chain("user1", "sponsor1", "sponsor2")
        create = network.commission_repo.create.side_effect

        def flaky_create(**data):
            if data["user_id"] == "sponsor1":
                raise _db_error()
            return create(**data)

        network.commission_repo.create.side_effect = flaky_create

        result = await service.process_activation(active_subscription)

        assert [r.beneficiary_user_id for r in result.records] == ["sponsor2"]
        assert result.skipped[0].reason == SkipReason.PERSISTENCE_FAILED
        event_type, severity = mock_audit_sink.record.await_args.args[:2]
        assert event_type == AuditEventType.COMMISSION_PERSISTENCE_FAILED
        assert severity == AuditSeverity.ERROR

    @pytest.mark.asyncio
    async def test_duplicate_activation_is_skipped(
        self, service, network, active_subscription, mock_session
    ):
        """Unique violation on an already credited activation is a no-op."""
        network.chain("user1", "sponsor1")
        network.commission_repo.create.side_effect = IntegrityError(
            "INSERT", {}, Exception("duplicate key")
        )
        network.commission_repo.exists.return_value = True

        result = await service.process_activation(active_subscription)

        assert result.records == []
        assert result.skipped[0].reason == SkipReason.DUPLICATE
        mock_session.rollback.assert_awaited()

    @pytest.mark.asyncio
    async def test_integrity_error_without_existing_row_is_failure(
        self, service, network, active_subscription
    ):
        """Other constraint violations count as persistence failures."""
        network.chain("user1", "sponsor1")
        network.commission_repo.create.side_effect = IntegrityError(
            "INSERT", {}, Exception("foreign key")
        )
        network.commission_repo.exists.return_value = False

        result = await service.process_activation(active_subscription)

        assert result.skipped[0].reason == SkipReason.PERSISTENCE_FAILED

    @pytest.mark.asyncio
    async def test_upline_lookup_failure_stops_walk(
        self, service, network, active_subscription
    ):
        """If the sponsor cannot be read, nothing above it is reachable."""
        network.member_repo.get_sponsor_id.side_effect = _db_error()

        result = await service.process_activation(active_subscription)

        assert result.records == []
        assert result.levels_walked == 0

    @pytest.mark.asyncio
    async def test_audit_sink_failure_does_not_escape(
        self, service, network, active_subscription, mock_audit_sink
    ):
        """Broken audit sink leaves the outcome unchanged."""
        network.chain("user1", "sponsor1", "sponsor2")
        network.subscription_repo.get_status.side_effect = [
            _db_error(),
            "active",
        ]
        mock_audit_sink.record.side_effect = RuntimeError("audit down")

        result = await service.process_activation(active_subscription)

        assert len(result.records) == 1

    @pytest.mark.asyncio
    async def test_configuration_error_propagates(
        self, mock_session, network, active_subscription
    ):
        """Missing plan is fatal for the whole computation."""

        class BrokenProvider:
            async def get_plan(self):
                raise ConfigurationError("Compensation plan has no levels")

        svc = SubscriptionCommissionService(
            mock_session, plan_provider=BrokenProvider()
        )
        network.wire(svc)
        network.chain("user1", "sponsor1")

        with pytest.raises(ConfigurationError):
            await svc.process_subscription_commission(active_subscription)


class TestSubscriptionUpdates:
    """Lifecycle entry point and previous-activity lookup."""

    @pytest.mark.asyncio
    async def test_recent_commission_means_previously_active(
        self, service, network
    ):
        """Ledger hit within the window."""
        network.commission_repo.has_recent_commission.return_value = True

        assert await service.was_subscription_previously_active("user1") is True

    @pytest.mark.asyncio
    async def test_previous_activity_lookup_failure_returns_false(
        self, service, network
    ):
        """Store error is logged and treated as not previously active."""
        network.commission_repo.has_recent_commission.side_effect = _db_error()

        assert await service.was_subscription_previously_active("user1") is False

    @pytest.mark.asyncio
    async def test_handle_update_accepts_webhook_payload(self, service, network):
        """camelCase mapping is converted and processed."""
        network.chain("user1", "sponsor1", "sponsor2")

        records = await service.handle_subscription_update(
            {
                "id": "sub_123",
                "userId": "user1",
                "status": "active",
                "currentPeriodEnd": "2026-11-01T00:00:00+00:00",
            }
        )

        assert [r.amount_cents for r in records] == [1500, 1000]
        kwargs = network.commission_repo.create.await_args.kwargs
        assert kwargs["activation_key"] == "sub_123:2026-11-01T00:00:00+00:00"

    @pytest.mark.asyncio
    async def test_handle_update_skips_renewal(
        self, service, network, active_subscription
    ):
        """A recent commission from this member blocks re-crediting."""
        network.chain("user1", "sponsor1")
        network.commission_repo.has_recent_commission.return_value = True

        records = await service.handle_subscription_update(active_subscription)

        assert records == []
        network.commission_repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_handle_update_ignores_canceled(self, service, network):
        """Canceled subscriptions do not hit the ledger at all."""
        records = await service.handle_subscription_update(
            SubscriptionRecord(id="sub_1", user_id="user1", status="canceled")
        )

        assert records == []
        network.commission_repo.has_recent_commission.assert_not_awaited()
