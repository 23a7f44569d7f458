"""
Tests for the advertiser side of the campaign workflow.

Covers:
- campaign creation, validation and listing
- ownership (403) vs missing (404)
- creative upload, client approval and submission to the compliance queue
- wallet reads
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import OperationalError

from vehiclee.models.models import (
    AuditLog,
    Campaign,
    ClientProfile,
    ComplianceQueueEntry,
    Creative,
    Invoice,
    WalletLedgerEntry,
)
from vehiclee.services import campaigns as campaign_service
from vehiclee.services.compliance import compliance_stats, review_creative

from conftest import PNG_B64, PNG_BYTES, auth_headers


CAMPAIGN_PAYLOAD = {
    "campaign_name": "Summer Sale",
    "city": "Riga",
    "start_date": "2025-01-01",
    "end_date": "2025-01-31",
    "number_of_cars": 10,
    "daily_budget": 5000,
    "total_budget": 155000,
}


def _upload(client, headers, campaign_id, data=PNG_B64, mime="image/png", name="Summer Ad.png"):
    return client.post(
        f"/client/campaigns/{campaign_id}/assets",
        json={"file_name": name, "file_data": data, "mime_type": mime},
        headers=headers,
    )


def _other_client(db_session, make_user):
    user = make_user("client", name="Other Advertiser")
    profile = ClientProfile(user_id=user.id, company_name="Other Co")
    db_session.add(profile)
    db_session.commit()
    return user, profile


# ── Creation ───────────────────────────────────────────────────────


class TestCreateCampaign:
    def test_create_returns_draft(self, client, db_session, client_profile, client_headers):
        r = client.post("/client/campaigns", json=CAMPAIGN_PAYLOAD, headers=client_headers)
        assert r.status_code == 201
        campaign_id = uuid.UUID(r.json()["campaign_id"])

        campaign = db_session.query(Campaign).filter(Campaign.id == campaign_id).one()
        assert campaign.status == "draft"
        assert campaign.client_id == client_profile.id
        assert campaign.campaign_name == "Summer Sale"
        assert campaign.number_of_cars == 10
        assert campaign.daily_budget == 5000
        assert campaign.total_budget == 155000
        assert campaign.compliance_approved_at is None

    def test_create_writes_audit_entry(self, client, db_session, client_user, client_profile, client_headers):
        r = client.post("/client/campaigns", json=CAMPAIGN_PAYLOAD, headers=client_headers)
        campaign_id = uuid.UUID(r.json()["campaign_id"])
        entry = db_session.query(AuditLog).filter(AuditLog.entity_id == campaign_id).one()
        assert entry.action == "campaign_created"
        assert entry.actor_id == client_user.id
        assert entry.actor_role == "client"

    def test_empty_name_is_422(self, client, client_profile, client_headers):
        r = client.post("/client/campaigns", json={**CAMPAIGN_PAYLOAD, "campaign_name": ""}, headers=client_headers)
        assert r.status_code == 422

    def test_blank_city_is_422(self, client, client_profile, client_headers):
        r = client.post("/client/campaigns", json={**CAMPAIGN_PAYLOAD, "city": "   "}, headers=client_headers)
        assert r.status_code == 422

    def test_non_positive_budget_is_422(self, client, client_profile, client_headers):
        for field in ("number_of_cars", "daily_budget", "total_budget"):
            r = client.post("/client/campaigns", json={**CAMPAIGN_PAYLOAD, field: 0}, headers=client_headers)
            assert r.status_code == 422, field

    def test_end_before_start_is_422(self, client, client_profile, client_headers):
        payload = {**CAMPAIGN_PAYLOAD, "start_date": "2025-02-01", "end_date": "2025-01-01"}
        r = client.post("/client/campaigns", json=payload, headers=client_headers)
        assert r.status_code == 422

    def test_unknown_zone_is_404(self, client, client_profile, client_headers):
        payload = {**CAMPAIGN_PAYLOAD, "zone_id": str(uuid.uuid4())}
        r = client.post("/client/campaigns", json=payload, headers=client_headers)
        assert r.status_code == 404
        assert r.json()["detail"] == "Zone not found"

    def test_without_profile_is_404(self, client, client_headers):
        r = client.post("/client/campaigns", json=CAMPAIGN_PAYLOAD, headers=client_headers)
        assert r.status_code == 404
        assert r.json()["detail"] == "Client profile not found"


class TestListCampaigns:
    def test_lists_only_own_campaigns(self, client, db_session, make_user, make_campaign, client_profile, client_headers):
        mine = make_campaign(client_profile, name="Mine")
        _, other_profile = _other_client(db_session, make_user)
        make_campaign(other_profile, name="Theirs")

        r = client.get("/client/campaigns", headers=client_headers)
        assert r.status_code == 200
        assert [c["id"] for c in r.json()] == [str(mine.id)]

    def test_without_profile_is_empty(self, client, client_headers):
        r = client.get("/client/campaigns", headers=client_headers)
        assert r.status_code == 200
        assert r.json() == []

    def test_detail_includes_creatives(self, client, make_campaign, client_profile, client_headers):
        campaign = make_campaign(client_profile)
        _upload(client, client_headers, campaign.id)
        r = client.get(f"/client/campaigns/{campaign.id}", headers=client_headers)
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "awaiting_creative"
        assert len(body["creatives"]) == 1


# ── Ownership ──────────────────────────────────────────────────────


class TestOwnership:
    def test_other_clients_campaign_is_403(self, client, db_session, make_user, make_campaign, client_profile):
        campaign = make_campaign(client_profile)
        other_user, _ = _other_client(db_session, make_user)
        headers = auth_headers(other_user)

        r = client.get(f"/client/campaigns/{campaign.id}", headers=headers)
        assert r.status_code == 403
        r = _upload(client, headers, campaign.id)
        assert r.status_code == 403
        assert r.json()["detail"] == "You do not own this campaign"

    def test_missing_campaign_is_404(self, client, client_profile, client_headers):
        r = _upload(client, client_headers, uuid.uuid4())
        assert r.status_code == 404
        assert r.json()["detail"] == "Campaign not found"

    def test_approving_other_clients_creative_is_403(
        self, client, db_session, make_user, make_campaign, client_profile, client_headers
    ):
        campaign = make_campaign(client_profile)
        creative_id = _upload(client, client_headers, campaign.id).json()["creative_id"]
        other_user, _ = _other_client(db_session, make_user)

        r = client.post(f"/client/creatives/{creative_id}/approve", headers=auth_headers(other_user))
        assert r.status_code == 403

    def test_approving_missing_creative_is_404(self, client, client_profile, client_headers):
        r = client.post(f"/client/creatives/{uuid.uuid4()}/approve", headers=client_headers)
        assert r.status_code == 404


# ── Upload ─────────────────────────────────────────────────────────


class TestUploadCreative:
    def test_upload_moves_draft_to_awaiting_creative(
        self, client, db_session, storage, make_campaign, client_profile, client_headers
    ):
        campaign = make_campaign(client_profile)
        r = _upload(client, client_headers, campaign.id)
        assert r.status_code == 201
        body = r.json()

        creative = db_session.query(Creative).filter(Creative.id == uuid.UUID(body["creative_id"])).one()
        assert creative.approval_status == "pending"
        assert creative.campaign_id == campaign.id
        assert creative.mime_type == "image/png"
        assert creative.client_approved_at is None
        assert body["asset_url"] == creative.asset_url == f"memory://{creative.asset_key}"
        assert creative.asset_key.startswith(f"campaigns/{campaign.id}/creatives/")
        assert creative.asset_key.endswith("-summer-ad.png")
        assert storage.objects[creative.asset_key] == (PNG_BYTES, "image/png")

        db_session.refresh(campaign)
        assert campaign.status == "awaiting_creative"

    def test_data_url_prefix_is_accepted(self, client, storage, make_campaign, client_profile, client_headers):
        campaign = make_campaign(client_profile)
        r = _upload(client, client_headers, campaign.id, data=f"data:image/png;base64,{PNG_B64}")
        assert r.status_code == 201
        assert list(storage.objects.values())[0][0] == PNG_BYTES

    def test_second_upload_keeps_status(self, client, db_session, make_campaign, client_profile, client_headers):
        campaign = make_campaign(client_profile)
        _upload(client, client_headers, campaign.id)
        r = _upload(client, client_headers, campaign.id, name="second.png")
        assert r.status_code == 201
        db_session.refresh(campaign)
        assert campaign.status == "awaiting_creative"
        assert db_session.query(Creative).filter(Creative.campaign_id == campaign.id).count() == 2

    def test_bad_base64_is_400(self, client, db_session, storage, make_campaign, client_profile, client_headers):
        campaign = make_campaign(client_profile)
        r = _upload(client, client_headers, campaign.id, data="!!!not base64!!!")
        assert r.status_code == 400
        assert storage.objects == {}
        assert db_session.query(Creative).count() == 0
        db_session.refresh(campaign)
        assert campaign.status == "draft"

    def test_unsupported_type_is_400(self, client, make_campaign, client_profile, client_headers):
        campaign = make_campaign(client_profile)
        r = _upload(client, client_headers, campaign.id, mime="application/pdf", name="ad.pdf")
        assert r.status_code == 400

    def test_closed_campaign_rejects_upload(self, client, make_campaign, client_profile, client_headers):
        campaign = make_campaign(client_profile, status="approved")
        r = _upload(client, client_headers, campaign.id)
        assert r.status_code == 409

    def test_failed_commit_removes_stored_object(
        self, client, db_session, storage, make_campaign, client_profile, client_headers, monkeypatch
    ):
        campaign = make_campaign(client_profile)

        def _unavailable(*args, **kwargs):
            raise OperationalError("INSERT INTO audit_logs", {}, Exception("connection lost"))

        monkeypatch.setattr(campaign_service, "record_audit", _unavailable)
        r = _upload(client, client_headers, campaign.id)
        assert r.status_code == 500
        assert r.json() == {"detail": "Database unavailable"}
        assert storage.objects == {}
        assert db_session.query(Creative).count() == 0
        db_session.refresh(campaign)
        assert campaign.status == "draft"


# ── Approval and submission ────────────────────────────────────────


class TestSubmitCreative:
    def _uploaded(self, client, client_headers, make_campaign, client_profile):
        campaign = make_campaign(client_profile)
        creative_id = _upload(client, client_headers, campaign.id).json()["creative_id"]
        return campaign, creative_id

    def test_client_approve_sets_timestamp(
        self, client, db_session, make_campaign, client_profile, client_headers
    ):
        _, creative_id = self._uploaded(client, client_headers, make_campaign, client_profile)
        r = client.post(f"/client/creatives/{creative_id}/approve", headers=client_headers)
        assert r.status_code == 200
        assert r.json() == {"success": True}
        creative = db_session.query(Creative).filter(Creative.id == uuid.UUID(creative_id)).one()
        assert creative.client_approved_at is not None
        # Client approval is not compliance approval
        assert creative.approval_status == "pending"

    def test_submit_requires_client_approval(
        self, client, db_session, make_campaign, client_profile, client_headers
    ):
        campaign, creative_id = self._uploaded(client, client_headers, make_campaign, client_profile)
        r = client.post(
            f"/client/campaigns/{campaign.id}/submit", json={"creative_id": creative_id}, headers=client_headers
        )
        assert r.status_code == 400
        assert db_session.query(ComplianceQueueEntry).count() == 0
        db_session.refresh(campaign)
        assert campaign.status == "awaiting_creative"

    def test_submit_creates_one_pending_queue_entry(
        self, client, db_session, make_campaign, client_profile, client_headers
    ):
        campaign, creative_id = self._uploaded(client, client_headers, make_campaign, client_profile)
        client.post(f"/client/creatives/{creative_id}/approve", headers=client_headers)

        r = client.post(
            f"/client/campaigns/{campaign.id}/submit", json={"creative_id": creative_id}, headers=client_headers
        )
        assert r.status_code == 200
        assert r.json() == {"success": True}

        entries = db_session.query(ComplianceQueueEntry).all()
        assert len(entries) == 1
        assert entries[0].entity_type == "creative"
        assert entries[0].entity_id == uuid.UUID(creative_id)
        assert entries[0].status == "pending"
        db_session.refresh(campaign)
        assert campaign.status == "awaiting_approval"

    def test_submit_creative_of_another_campaign_is_404(
        self, client, make_campaign, client_profile, client_headers
    ):
        _, creative_id = self._uploaded(client, client_headers, make_campaign, client_profile)
        client.post(f"/client/creatives/{creative_id}/approve", headers=client_headers)
        other = make_campaign(client_profile, status="awaiting_creative", name="Other")
        r = client.post(
            f"/client/campaigns/{other.id}/submit", json={"creative_id": creative_id}, headers=client_headers
        )
        assert r.status_code == 404

    def test_second_submit_while_pending_is_409(
        self, client, db_session, make_campaign, client_profile, client_headers
    ):
        campaign, creative_id = self._uploaded(client, client_headers, make_campaign, client_profile)
        client.post(f"/client/creatives/{creative_id}/approve", headers=client_headers)
        url = f"/client/campaigns/{campaign.id}/submit"
        assert client.post(url, json={"creative_id": creative_id}, headers=client_headers).status_code == 200

        r = client.post(url, json={"creative_id": creative_id}, headers=client_headers)
        assert r.status_code == 409
        assert db_session.query(ComplianceQueueEntry).count() == 1
        stats = compliance_stats(db_session)
        assert stats == {"pending": 1, "approved": 0, "rejected": 0}

    def test_resubmission_after_rejection(
        self, client, db_session, admin_user, make_campaign, client_profile, client_headers
    ):
        campaign, creative_id = self._uploaded(client, client_headers, make_campaign, client_profile)
        client.post(f"/client/creatives/{creative_id}/approve", headers=client_headers)
        url = f"/client/campaigns/{campaign.id}/submit"
        client.post(url, json={"creative_id": creative_id}, headers=client_headers)
        entry = db_session.query(ComplianceQueueEntry).one()
        review_creative(db_session, admin_user, entry.id, uuid.UUID(creative_id), approved=False, rejection_reason="Blurry")

        r = client.post(url, json={"creative_id": creative_id}, headers=client_headers)
        assert r.status_code == 200
        statuses = sorted(e.status for e in db_session.query(ComplianceQueueEntry).all())
        assert statuses == ["pending", "rejected"]
        db_session.refresh(campaign)
        assert campaign.status == "awaiting_approval"

    def test_submit_approved_creative_is_409(
        self, client, db_session, admin_user, make_campaign, client_profile, client_headers
    ):
        campaign, creative_id = self._uploaded(client, client_headers, make_campaign, client_profile)
        client.post(f"/client/creatives/{creative_id}/approve", headers=client_headers)
        url = f"/client/campaigns/{campaign.id}/submit"
        client.post(url, json={"creative_id": creative_id}, headers=client_headers)
        entry = db_session.query(ComplianceQueueEntry).one()
        review_creative(db_session, admin_user, entry.id, uuid.UUID(creative_id), approved=True)

        r = client.post(url, json={"creative_id": creative_id}, headers=client_headers)
        assert r.status_code == 409
        assert r.json()["detail"] == "Creative is already approved"
        assert compliance_stats(db_session) == {"pending": 0, "approved": 1, "rejected": 0}


# ── Wallet ─────────────────────────────────────────────────────────


class TestWallet:
    def test_balance_in_cents(self, client, client_profile, client_headers):
        r = client.get("/client/wallet/balance", headers=client_headers)
        assert r.status_code == 200
        assert r.json() == 100000

    def test_balance_without_profile_is_zero(self, client, client_headers):
        r = client.get("/client/wallet/balance", headers=client_headers)
        assert r.json() == 0

    def test_ledger_and_invoices(self, client, db_session, client_profile, client_headers):
        db_session.add(WalletLedgerEntry(
            client_id=client_profile.id,
            transaction_type="topup",
            amount=100000,
            balance_before=0,
            balance_after=100000,
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        ))
        db_session.add(Invoice(
            client_id=client_profile.id,
            invoice_number="INV-2025-0001",
            invoice_date=datetime(2025, 1, 31).date(),
            due_date=datetime(2025, 2, 14).date(),
            subtotal=10000,
            vat_amount=2100,
            total=12100,
            vat_rate=21,
        ))
        db_session.commit()

        ledger = client.get("/client/wallet/ledger", headers=client_headers).json()
        assert len(ledger) == 1
        assert ledger[0]["transaction_type"] == "topup"
        assert ledger[0]["balance_after"] == 100000

        invoices = client.get("/client/invoices", headers=client_headers).json()
        assert [i["invoice_number"] for i in invoices] == ["INV-2025-0001"]
        assert invoices[0]["total"] == 12100
