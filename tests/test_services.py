"""
Unit Tests for the registry, ledger and moderation services
Database access is mocked; the breaker passes calls straight through
"""
import pytest
from datetime import datetime
from unittest.mock import MagicMock
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.sql.dml import Update

from trustfund.core.errors import (
    CodeExhausted,
    Conflict,
    Forbidden,
    InternalError,
    InvalidAmount,
    NotFound,
    ServiceUnavailable,
    ValidationError,
)
from trustfund.core.circuit_breaker import CircuitBreakerError
from trustfund.models.base import BIGINT_MAX, MAX_AMOUNT
from trustfund.models import (
    Cause,
    Donation,
    NgoVerification,
    Ticket,
    TicketStatus,
    User,
    VerificationStatus,
)
from trustfund.schemas.campaign import CampaignResponse, CreateCampaignRequest
from trustfund.schemas.donation import DonationResponse
from trustfund.schemas.user import UpdateUserFlagsRequest
from trustfund.services.campaign import CampaignService
from trustfund.services.code_generator import CodeGenerator
from trustfund.services.donation import DonationService
from trustfund.services.moderation import NgoVerificationQueue, TicketQueue
from trustfund.services.stats import StatsService
from trustfund.services.user import UserService
from trustfund.services.verification import FUNDS_HELD, KYC_REQUIRED, NGO_ONLY


def query_returning(session, result):
    """Make ``session.query(...).filter(...).first()`` return ``result``"""
    mock_query = MagicMock()
    mock_filter = MagicMock()
    mock_filter.first.return_value = result
    mock_query.filter.return_value = mock_filter
    session.query.return_value = mock_query
    return mock_filter


def route_queries(session, results):
    """Route ``session.query(model)`` by model to a per-model ``first()`` result"""
    def query(model, *args):
        mock_query = MagicMock()
        mock_query.filter.return_value.first.return_value = results.get(model)
        return mock_query
    session.query.side_effect = query


def refresh_with_identity(obj):
    obj.id = obj.id or 1
    obj.created_at = datetime(2025, 5, 1, 10, 0, 0)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def campaign_service(mock_circuit_breaker, disabled_cache):
    return CampaignService(
        breaker=mock_circuit_breaker,
        cache=disabled_cache,
        code_generator=CodeGenerator(max_attempts=5),
    )


@pytest.fixture
def donation_service(mock_circuit_breaker, campaign_service):
    return DonationService(mock_circuit_breaker, campaign_service)


@pytest.fixture
def clean_water_request():
    return CreateCampaignRequest(
        title="Clean Water",
        description="Borewells for three villages",
        cause=Cause.COMMUNITY,
        goal_amount=10000,
        location="Pune",
    )


# ============================================================================
# CAMPAIGN REGISTRY - CREATE
# ============================================================================

class TestCampaignServiceCreate:
    """Campaign creation - success and failure scenarios"""

    @pytest.mark.asyncio
    async def test_create_campaign_success(self, campaign_service, mock_db_session, kyc_user, clean_water_request):
        query_returning(mock_db_session, None)
        mock_db_session.refresh = MagicMock(side_effect=refresh_with_identity)

        campaign = await campaign_service.create_campaign(
            db=mock_db_session,
            campaign_data=clean_water_request,
            actor=kyc_user,
        )

        assert mock_db_session.add.called
        assert mock_db_session.commit.called
        assert isinstance(campaign, CampaignResponse)
        assert campaign.collected_amount == 0
        assert campaign.verified is False
        assert campaign.created_by == kyc_user.id
        assert campaign.unique_code.startswith("TF-")
        assert len(campaign.unique_code) == 9

    @pytest.mark.asyncio
    async def test_create_requires_kyc(self, campaign_service, mock_db_session, unverified_user, clean_water_request):
        with pytest.raises(Forbidden) as exc_info:
            await campaign_service.create_campaign(mock_db_session, clean_water_request, unverified_user)

        assert exc_info.value.message == KYC_REQUIRED
        assert not mock_db_session.add.called

    @pytest.mark.asyncio
    async def test_disaster_relief_requires_ngo(self, campaign_service, mock_db_session, kyc_user):
        request = CreateCampaignRequest(
            title="Flood Relief",
            description="Assam floods",
            cause=Cause.DISASTER_RELIEF,
            goal_amount=50000,
        )

        with pytest.raises(Forbidden) as exc_info:
            await campaign_service.create_campaign(mock_db_session, request, kyc_user)

        assert exc_info.value.message == NGO_ONLY
        assert not mock_db_session.add.called

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides,field", [
        ({"title": "   "}, "title"),
        ({"description": ""}, "description"),
        ({"goal_amount": 0}, "goalAmount"),
        ({"goal_amount": -100}, "goalAmount"),
        ({"is_temporary": True}, "isTemporary"),
        ({"hospital_email": "desk@hospital.example.com"}, "hospitalEmail"),
    ])
    async def test_create_validation(self, campaign_service, mock_db_session, kyc_user, overrides, field):
        data = {
            "title": "Clean Water",
            "description": "Borewells",
            "cause": Cause.COMMUNITY,
            "goal_amount": 10000,
        }
        data.update(overrides)

        with pytest.raises(ValidationError) as exc_info:
            await campaign_service.create_campaign(mock_db_session, CreateCampaignRequest(**data), kyc_user)

        assert exc_info.value.message.startswith(field)
        assert not mock_db_session.add.called

    @pytest.mark.asyncio
    async def test_goal_beyond_limit_rejected(self, campaign_service, mock_db_session, kyc_user, clean_water_request):
        request = clean_water_request.model_copy(update={"goal_amount": MAX_AMOUNT + 1})

        with pytest.raises(ValidationError) as exc_info:
            await campaign_service.create_campaign(mock_db_session, request, kyc_user)

        assert exc_info.value.message.startswith("goalAmount")
        assert not mock_db_session.add.called

    @pytest.mark.asyncio
    async def test_medical_campaign_may_be_temporary(self, campaign_service, mock_db_session, kyc_user):
        query_returning(mock_db_session, None)
        mock_db_session.refresh = MagicMock(side_effect=refresh_with_identity)
        request = CreateCampaignRequest(
            title="Surgery for Meera",
            description="Emergency cardiac surgery",
            cause=Cause.MEDICAL,
            goal_amount=200000,
            is_temporary=True,
            hospital_email="billing@cityhospital.example.com",
        )

        campaign = await campaign_service.create_campaign(mock_db_session, request, kyc_user)

        assert campaign.is_temporary is True
        assert campaign.hospital_email == "billing@cityhospital.example.com"

    @pytest.mark.asyncio
    async def test_create_duplicate_code_conflict(self, campaign_service, mock_db_session, kyc_user, clean_water_request):
        query_returning(mock_db_session, None)
        mock_db_session.commit.side_effect = IntegrityError("INSERT", {}, Exception("unique_code"))

        with pytest.raises(Conflict):
            await campaign_service.create_campaign(mock_db_session, clean_water_request, kyc_user)

        assert mock_db_session.rollback.called

    @pytest.mark.asyncio
    async def test_create_code_exhausted(self, mock_circuit_breaker, disabled_cache, mock_db_session,
                                         kyc_user, clean_water_request):
        service = CampaignService(
            breaker=mock_circuit_breaker,
            cache=disabled_cache,
            code_generator=CodeGenerator(max_attempts=3, draw=lambda: "TF-TAKEN1"),
        )
        query_returning(mock_db_session, (1,))

        with pytest.raises(CodeExhausted):
            await service.create_campaign(mock_db_session, clean_water_request, kyc_user)

        assert not mock_db_session.add.called

    @pytest.mark.asyncio
    async def test_create_database_error(self, campaign_service, mock_db_session, kyc_user, clean_water_request):
        query_returning(mock_db_session, None)
        mock_db_session.commit.side_effect = OperationalError("INSERT", {}, Exception("connection lost"))

        with pytest.raises(InternalError) as exc_info:
            await campaign_service.create_campaign(mock_db_session, clean_water_request, kyc_user)

        assert "Failed to create campaign" in exc_info.value.message
        assert mock_db_session.rollback.called

    @pytest.mark.asyncio
    async def test_create_circuit_breaker_open(self, disabled_cache, mock_db_session, kyc_user, clean_water_request):
        async def mock_call_open(func):
            raise CircuitBreakerError("Circuit breaker is open")

        breaker = MagicMock()
        breaker.call = mock_call_open
        service = CampaignService(breaker=breaker, cache=disabled_cache, code_generator=CodeGenerator())

        with pytest.raises(ServiceUnavailable):
            await service.create_campaign(mock_db_session, clean_water_request, kyc_user)


# ============================================================================
# CAMPAIGN REGISTRY - READ / UPDATE
# ============================================================================

class TestCampaignServiceRead:

    @pytest.mark.asyncio
    async def test_get_campaign_success(self, campaign_service, mock_db_session, sample_campaign):
        query_returning(mock_db_session, sample_campaign)

        campaign = await campaign_service.get_campaign(mock_db_session, sample_campaign.id)

        assert campaign.id == sample_campaign.id
        assert campaign.unique_code == "TF-AB12CD"

    @pytest.mark.asyncio
    async def test_get_campaign_not_found(self, campaign_service, mock_db_session):
        query_returning(mock_db_session, None)

        with pytest.raises(NotFound):
            await campaign_service.get_campaign(mock_db_session, 999)

    @pytest.mark.asyncio
    async def test_get_campaign_served_from_cache(self, mock_circuit_breaker, mock_db_session, sample_campaign):
        cache = MagicMock()
        cache.get_campaign.return_value = CampaignResponse.model_validate(sample_campaign).model_dump(mode="json")
        service = CampaignService(mock_circuit_breaker, cache, CodeGenerator())

        campaign = await service.get_campaign(mock_db_session, sample_campaign.id)

        assert campaign.title == "Clean Water"
        assert not mock_db_session.query.called

    @pytest.mark.asyncio
    async def test_get_by_code_not_found(self, campaign_service, mock_db_session):
        query_returning(mock_db_session, None)

        with pytest.raises(NotFound) as exc_info:
            await campaign_service.get_campaign_by_code(mock_db_session, " tf-zzzzzz ")

        assert "TF-ZZZZZZ" in exc_info.value.message

    def test_apply_donation_is_single_update(self, campaign_service, mock_db_session):
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = 150

        assert campaign_service.apply_donation(mock_db_session, 5, 50) == 150

        statement = mock_db_session.execute.call_args[0][0]
        assert isinstance(statement, Update)
        assert not mock_db_session.commit.called

    def test_apply_donation_unknown_campaign(self, campaign_service, mock_db_session):
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = None

        with pytest.raises(NotFound):
            campaign_service.apply_donation(mock_db_session, 404, 50)

    @pytest.mark.asyncio
    async def test_set_verified_is_idempotent(self, campaign_service, mock_db_session, sample_campaign):
        sample_campaign.verified = True
        query_returning(mock_db_session, sample_campaign)

        campaign = await campaign_service.set_verified(mock_db_session, sample_campaign.id, True)

        assert campaign.verified is True
        assert not mock_db_session.commit.called

    @pytest.mark.asyncio
    async def test_set_verified_flips_flag(self, campaign_service, mock_db_session, sample_campaign):
        query_returning(mock_db_session, sample_campaign)

        campaign = await campaign_service.set_verified(mock_db_session, sample_campaign.id, True)

        assert campaign.verified is True
        assert mock_db_session.commit.called


# ============================================================================
# DONATION LEDGER
# ============================================================================

class TestDonationService:
    """Recording donations against campaigns"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount,tip", [(0, 0), (-5, 0), (100, -1), (MAX_AMOUNT + 1, 0), (100, MAX_AMOUNT + 1)])
    async def test_invalid_amount_touches_nothing(self, donation_service, mock_db_session, amount, tip):
        with pytest.raises(InvalidAmount):
            await donation_service.record_donation(mock_db_session, campaign_id=5, amount=amount, tip_amount=tip)

        assert not mock_db_session.query.called
        assert not mock_db_session.add.called
        assert not mock_db_session.execute.called
        assert not mock_db_session.commit.called

    @pytest.mark.asyncio
    async def test_increment_past_column_range_rejected(self, donation_service, mock_db_session, sample_campaign):
        sample_campaign.collected_amount = BIGINT_MAX - 10
        query_returning(mock_db_session, sample_campaign)

        with pytest.raises(InvalidAmount):
            await donation_service.record_donation(mock_db_session, campaign_id=sample_campaign.id, amount=11)

        assert not mock_db_session.add.called
        assert not mock_db_session.execute.called
        assert mock_db_session.rollback.called

    @pytest.mark.asyncio
    async def test_record_donation_tip_excluded(self, donation_service, mock_db_session, sample_campaign):
        query_returning(mock_db_session, sample_campaign)
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = 2500
        mock_db_session.refresh = MagicMock(side_effect=refresh_with_identity)

        donation = await donation_service.record_donation(
            mock_db_session, campaign_id=sample_campaign.id, amount=2500, tip_amount=250,
        )

        assert isinstance(donation, DonationResponse)
        assert donation.amount == 2500
        assert donation.tip_amount == 250
        assert donation.released is True
        assert donation.donor_id is None

        mock_db_session.commit.assert_called_once()
        added = mock_db_session.add.call_args[0][0]
        assert isinstance(added, Donation)

    @pytest.mark.asyncio
    async def test_registered_donor_recorded(self, donation_service, mock_db_session, sample_campaign, kyc_user):
        query_returning(mock_db_session, sample_campaign)
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = 100
        mock_db_session.refresh = MagicMock(side_effect=refresh_with_identity)

        donation = await donation_service.record_donation(
            mock_db_session, campaign_id=sample_campaign.id, amount=100, donor=kyc_user, donor_name="Asha",
        )

        assert donation.donor_id == kyc_user.id
        assert donation.donor_name == "Asha"

    @pytest.mark.asyncio
    async def test_temporary_unverified_campaign_holds_funds(self, donation_service, mock_db_session, temporary_campaign):
        query_returning(mock_db_session, temporary_campaign)
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = 1000
        mock_db_session.refresh = MagicMock(side_effect=refresh_with_identity)

        donation = await donation_service.record_donation(mock_db_session, temporary_campaign.id, amount=1000)

        assert donation.released is False
        # Principal still counts towards the campaign
        assert mock_db_session.execute.called

    @pytest.mark.asyncio
    async def test_unknown_campaign(self, donation_service, mock_db_session):
        query_returning(mock_db_session, None)

        with pytest.raises(NotFound):
            await donation_service.record_donation(mock_db_session, campaign_id=999, amount=100)

        assert not mock_db_session.add.called
        assert mock_db_session.rollback.called

    @pytest.mark.asyncio
    async def test_increment_failure_rolls_back(self, donation_service, mock_db_session, sample_campaign):
        query_returning(mock_db_session, sample_campaign)
        mock_db_session.execute.side_effect = OperationalError("UPDATE", {}, Exception("deadlock"))

        with pytest.raises(InternalError):
            await donation_service.record_donation(mock_db_session, sample_campaign.id, amount=100)

        assert mock_db_session.rollback.called
        assert not mock_db_session.commit.called

    @pytest.mark.asyncio
    async def test_release_refused_while_held(self, donation_service, mock_db_session, temporary_campaign):
        query_returning(mock_db_session, temporary_campaign)

        with pytest.raises(Forbidden) as exc_info:
            await donation_service.release_held_donations(mock_db_session, temporary_campaign.id)

        assert exc_info.value.message == FUNDS_HELD
        assert not mock_db_session.commit.called

    @pytest.mark.asyncio
    async def test_release_after_verification(self, donation_service, mock_db_session, temporary_campaign):
        temporary_campaign.verified = True
        mock_filter = query_returning(mock_db_session, temporary_campaign)
        mock_filter.update.return_value = 3

        released = await donation_service.release_held_donations(mock_db_session, temporary_campaign.id)

        assert released == 3
        assert mock_db_session.commit.called


# ============================================================================
# MODERATION QUEUE
# ============================================================================

class TestTicketQueue:

    @pytest.mark.asyncio
    async def test_resolve_open_ticket(self, mock_circuit_breaker, mock_db_session):
        ticket = Ticket(id=3, name="Ravi", email="ravi@example.com", message="Payment stuck",
                        status=TicketStatus.OPEN, created_at=datetime(2025, 5, 1))
        query_returning(mock_db_session, ticket)

        resolved = await TicketQueue(mock_circuit_breaker).resolve(mock_db_session, 3, TicketStatus.RESOLVED)

        assert resolved.status == TicketStatus.RESOLVED
        assert resolved.resolved_at is not None
        assert mock_db_session.commit.called

    @pytest.mark.asyncio
    async def test_resolve_twice_is_noop(self, mock_circuit_breaker, mock_db_session):
        ticket = Ticket(id=3, name="Ravi", email="ravi@example.com", message="Payment stuck",
                        status=TicketStatus.RESOLVED, created_at=datetime(2025, 5, 1),
                        resolved_at=datetime(2025, 5, 2))
        query_returning(mock_db_session, ticket)

        resolved = await TicketQueue(mock_circuit_breaker).resolve(mock_db_session, 3, TicketStatus.RESOLVED)

        assert resolved.status == TicketStatus.RESOLVED
        assert resolved.resolved_at == datetime(2025, 5, 2)
        assert not mock_db_session.commit.called

    @pytest.mark.asyncio
    async def test_cannot_reopen(self, mock_circuit_breaker, mock_db_session):
        with pytest.raises(ValidationError):
            await TicketQueue(mock_circuit_breaker).resolve(mock_db_session, 3, TicketStatus.OPEN)
        assert not mock_db_session.query.called

    @pytest.mark.asyncio
    async def test_unknown_ticket(self, mock_circuit_breaker, mock_db_session):
        query_returning(mock_db_session, None)
        with pytest.raises(NotFound):
            await TicketQueue(mock_circuit_breaker).resolve(mock_db_session, 42, TicketStatus.RESOLVED)


class TestNgoVerificationQueue:

    @pytest.fixture
    def pending_request(self):
        return NgoVerification(id=9, user_id="user-kyc", documents_url="https://files.example.com/reg.pdf",
                               status=VerificationStatus.PENDING, requested_at=datetime(2025, 5, 1))

    @pytest.mark.asyncio
    async def test_approval_marks_user_as_ngo(self, mock_circuit_breaker, mock_db_session, pending_request, kyc_user):
        route_queries(mock_db_session, {NgoVerification: pending_request, User: kyc_user})

        result = await NgoVerificationQueue(mock_circuit_breaker).resolve(mock_db_session, 9, True)

        assert result.status == VerificationStatus.VERIFIED
        assert result.verified is True
        assert kyc_user.is_ngo is True

    @pytest.mark.asyncio
    async def test_rejection_leaves_user(self, mock_circuit_breaker, mock_db_session, pending_request, kyc_user):
        route_queries(mock_db_session, {NgoVerification: pending_request, User: kyc_user})

        result = await NgoVerificationQueue(mock_circuit_breaker).resolve(mock_db_session, 9, False)

        assert result.status == VerificationStatus.REJECTED
        assert kyc_user.is_ngo is False

    @pytest.mark.asyncio
    async def test_conflicting_resolution(self, mock_circuit_breaker, mock_db_session, pending_request):
        pending_request.status = VerificationStatus.REJECTED
        query_returning(mock_db_session, pending_request)

        with pytest.raises(Conflict):
            await NgoVerificationQueue(mock_circuit_breaker).resolve(mock_db_session, 9, True)
        assert not mock_db_session.commit.called

    @pytest.mark.asyncio
    async def test_submit_by_ngo_conflicts(self, mock_circuit_breaker, mock_db_session, ngo_user):
        with pytest.raises(Conflict):
            await NgoVerificationQueue(mock_circuit_breaker).submit(mock_db_session, ngo_user, "https://x/doc.pdf")
        assert not mock_db_session.add.called

    @pytest.mark.asyncio
    async def test_submit_with_pending_request_conflicts(self, mock_circuit_breaker, mock_db_session, kyc_user):
        query_returning(mock_db_session, (9,))

        with pytest.raises(Conflict):
            await NgoVerificationQueue(mock_circuit_breaker).submit(mock_db_session, kyc_user, "https://x/doc.pdf")
        assert not mock_db_session.add.called

    @pytest.mark.asyncio
    async def test_submit_losing_race_conflicts(self, mock_circuit_breaker, mock_db_session, kyc_user):
        query_returning(mock_db_session, None)
        mock_db_session.commit.side_effect = IntegrityError("INSERT", {}, Exception("uq_ngo_verifications_pending_user"))

        with pytest.raises(Conflict):
            await NgoVerificationQueue(mock_circuit_breaker).submit(mock_db_session, kyc_user, "https://x/doc.pdf")
        assert mock_db_session.rollback.called

    @pytest.mark.asyncio
    async def test_submit_requires_documents(self, mock_circuit_breaker, mock_db_session, kyc_user):
        with pytest.raises(ValidationError):
            await NgoVerificationQueue(mock_circuit_breaker).submit(mock_db_session, kyc_user, "  ")


# ============================================================================
# USERS AND STATS
# ============================================================================

class TestUserService:

    @pytest.mark.asyncio
    async def test_existing_user_resolved(self, mock_circuit_breaker, mock_db_session, kyc_user):
        query_returning(mock_db_session, kyc_user)

        user = await UserService(mock_circuit_breaker).resolve_actor(mock_db_session, {"sub": kyc_user.id})

        assert user is kyc_user
        assert not mock_db_session.add.called

    @pytest.mark.asyncio
    async def test_first_sign_in_creates_user(self, mock_circuit_breaker, mock_db_session):
        query_returning(mock_db_session, None)

        user = await UserService(mock_circuit_breaker).resolve_actor(
            mock_db_session, {"sub": "new-sub", "email": "new@example.com", "name": "New Person"}
        )

        assert user.id == "new-sub"
        assert user.kyc_verified is False
        assert user.is_ngo is False
        assert mock_db_session.commit.called

    @pytest.mark.asyncio
    async def test_update_flags_only_touches_given_fields(self, mock_circuit_breaker, mock_db_session, unverified_user):
        query_returning(mock_db_session, unverified_user)

        user = await UserService(mock_circuit_breaker).update_flags(
            mock_db_session, unverified_user.id, UpdateUserFlagsRequest(kyc_verified=True)
        )

        assert user.kyc_verified is True
        assert user.is_ngo is False
        assert user.is_admin is False


class TestStatsService:

    def test_rejects_unknown_formula(self, mock_circuit_breaker):
        with pytest.raises(ValueError):
            StatsService(mock_circuit_breaker, lives_formula="guesswork")

    def test_rejects_non_positive_divisor(self, mock_circuit_breaker):
        with pytest.raises(ValueError):
            StatsService(mock_circuit_breaker, lives_formula="per_amount", rupees_per_life=0)

    def test_per_amount_formula(self, mock_circuit_breaker, mock_db_session):
        service = StatsService(mock_circuit_breaker, lives_formula="per_amount", rupees_per_life=1000)
        assert service._lives_impacted(mock_db_session, 2500) == 2
        assert not mock_db_session.query.called
