"""
Tests for tier API routes
"""
import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from auditdesk.core.clock import utcnow
from auditdesk.db.models import CompanyTier

from conftest import create_company


class TestTierRoutes:
    """Tests for tier maintenance endpoints"""

    @pytest.mark.asyncio
    async def test_update_all(self, client: AsyncClient, db_session: AsyncSession):
        await create_company(db_session, age_days=200, ad_spend=3100, tier=CompanyTier.TIER_2, now=utcnow())

        response = await client.post("/api/tiers/update-all")

        assert response.status_code == 200
        data = response.json()
        assert data["total_companies"] == 1
        assert data["updated_count"] == 1
        assert data["changes"][0]["old_tier"] == "TIER_2"
        assert data["changes"][0]["new_tier"] == "TIER_1"

    @pytest.mark.asyncio
    async def test_override_and_history(self, client: AsyncClient, sample_company, sample_ceo):
        response = await client.post(
            f"/api/tiers/companies/{sample_company.id}/override",
            json={"new_tier": "TIER_1", "admin_user_id": str(sample_ceo.id), "reason": "Key account"},
        )

        assert response.status_code == 200
        assert response.json()["tier"] == "TIER_1"

        response = await client.get(f"/api/tiers/companies/{sample_company.id}/history")

        assert response.status_code == 200
        history = response.json()
        assert len(history) == 1
        assert history[0]["reason"] == "MANUAL_OVERRIDE"
        assert history[0]["notes"] == "Key account"

    @pytest.mark.asyncio
    async def test_override_forbidden_for_team_member(self, client: AsyncClient, sample_company, sample_member):
        response = await client.post(
            f"/api/tiers/companies/{sample_company.id}/override",
            json={"new_tier": "TIER_1", "admin_user_id": str(sample_member.id)},
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_override_to_same_tier(self, client: AsyncClient, sample_company, sample_ceo):
        response = await client.post(
            f"/api/tiers/companies/{sample_company.id}/override",
            json={"new_tier": "TIER_3", "admin_user_id": str(sample_ceo.id)},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_override_unknown_company(self, client: AsyncClient, sample_ceo):
        response = await client.post(
            f"/api/tiers/companies/{uuid.uuid4()}/override",
            json={"new_tier": "TIER_1", "admin_user_id": str(sample_ceo.id)},
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_statistics(self, client: AsyncClient, sample_company):
        response = await client.get("/api/tiers/statistics")

        assert response.status_code == 200
        data = response.json()
        assert data["total_companies"] == 1
        assert data["distribution"]["TIER_3"] == 1

    @pytest.mark.asyncio
    async def test_review(self, client: AsyncClient, db_session: AsyncSession):
        company = await create_company(db_session, age_days=10, tier=CompanyTier.TIER_3, now=utcnow())

        response = await client.get("/api/tiers/review")

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["company_id"] == str(company.id)
        assert data[0]["suggested_tier"] == "TIER_2"

    @pytest.mark.asyncio
    async def test_can_override(self, client: AsyncClient, sample_ceo, sample_member):
        response = await client.get("/api/tiers/can-override", params={"user_id": str(sample_ceo.id)})
        assert response.json()["can_override"] is True

        response = await client.get("/api/tiers/can-override", params={"user_id": str(sample_member.id)})
        assert response.json()["can_override"] is False
