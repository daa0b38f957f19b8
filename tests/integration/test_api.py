import pytest
from datetime import timedelta
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from unittest.mock import AsyncMock, patch

from aetherra.models.activity import Activity
from aetherra.models.report import Report
from aetherra.services.report_builder import purge_expired_reports
from aetherra.utils.time import utcnow

API = "/api/v1"


# Health and auth
@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "x-request-id" in response.headers


@pytest.mark.asyncio
async def test_register_login_and_profile(client: AsyncClient, auth_headers):
    response = await client.get(f"{API}/auth/me", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["email"] == "alice@example.com"
    assert "hashed_password" not in response.json()


@pytest.mark.asyncio
async def test_duplicate_registration_and_bad_login(client: AsyncClient, auth_headers):
    duplicate = await client.post(
        f"{API}/auth/register",
        json={"email": "Alice@example.com", "full_name": "Again", "password": "another-one"},
    )
    assert duplicate.status_code == 400

    bad_login = await client.post(f"{API}/auth/login", json={"email": "alice@example.com", "password": "wrong"})
    assert bad_login.status_code == 401


@pytest.mark.asyncio
async def test_requires_bearer_token(client: AsyncClient):
    assert (await client.get(f"{API}/calculations/")).status_code == 401
    invalid = await client.get(f"{API}/dashboard/", headers={"Authorization": "Bearer not-a-jwt"})
    assert invalid.status_code == 401


# Calculations
@pytest.mark.asyncio
async def test_calculation_crud(client: AsyncClient, auth_headers, electricity_payload):
    created = await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)
    assert created.status_code == 201
    calc = created.json()
    assert calc["type"] == "electricity"
    assert calc["emissions"] == pytest.approx(2.375)

    fetched = await client.get(f"{API}/calculations/{calc['id']}", headers=auth_headers)
    assert fetched.status_code == 200
    assert fetched.json()["inputs"]["kwh"] == 5000

    updated = await client.put(
        f"{API}/calculations/{calc['id']}",
        json={"inputs": {"type": "vehicle", "vehicle_class": "car", "fuel": "petrol", "efficiency": 8.5, "distance_km": 15000}},
        headers=auth_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["type"] == "vehicle"
    assert updated.json()["emissions"] == pytest.approx(2.94525)

    deleted = await client.delete(f"{API}/calculations/{calc['id']}", headers=auth_headers)
    assert deleted.status_code == 204
    missing = await client.get(f"{API}/calculations/{calc['id']}", headers=auth_headers)
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Calculation not found"


@pytest.mark.asyncio
async def test_preview_does_not_persist(client: AsyncClient, auth_headers):
    preview = await client.post(
        f"{API}/calculations/preview",
        json={"inputs": {"type": "shipping", "distance_km": 500, "weight_tons": 2.5, "mode": "air"}},
        headers=auth_headers,
    )
    assert preview.status_code == 200
    assert preview.json()["emissions"] == pytest.approx(0.7525)

    listing = await client.get(f"{API}/calculations/", headers=auth_headers)
    assert listing.json() == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "inputs",
    [
        {"type": "electricity", "kwh": -5, "source": "grid"},
        {"type": "electricity", "kwh": 5, "source": "coal"},
        {"type": "vehicle", "vehicle_class": "car", "fuel": "petrol", "efficiency": 8.5},
        {"type": "teleport", "distance_km": 5},
    ],
)
async def test_invalid_inputs_rejected(client: AsyncClient, auth_headers, inputs):
    response = await client.post(f"{API}/calculations/", json={"inputs": inputs}, headers=auth_headers)
    assert response.status_code == 422

    listing = await client.get(f"{API}/calculations/", headers=auth_headers)
    assert listing.json() == []


@pytest.mark.asyncio
async def test_calculations_are_private(client: AsyncClient, auth_headers, other_headers, electricity_payload):
    created = await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)
    calc_id = created.json()["id"]

    assert (await client.get(f"{API}/calculations/{calc_id}", headers=other_headers)).status_code == 404
    assert (await client.delete(f"{API}/calculations/{calc_id}", headers=other_headers)).status_code == 404
    assert (await client.get(f"{API}/calculations/", headers=other_headers)).json() == []


def activity_without_action(**fields):
    return Activity(**{**fields, "action": None})


@pytest.mark.asyncio
async def test_failed_activity_write_keeps_the_response(client: AsyncClient, auth_headers, electricity_payload):
    with patch("aetherra.services.activity.Activity", side_effect=activity_without_action):
        created = await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)
        goal = await client.post(
            f"{API}/goals/",
            json={
                "title": "Audit-free goal",
                "category": "energy",
                "target": 10,
                "target_type": "absolute",
                "deadline": (utcnow() + timedelta(days=30)).isoformat(),
            },
            headers=auth_headers,
        )
        report = await client.post(f"{API}/reports/", headers=auth_headers)

    assert created.status_code == 201
    assert created.json()["emissions"] == pytest.approx(2.375)
    assert goal.status_code == 201
    assert goal.json()["title"] == "Audit-free goal"
    assert report.status_code == 201
    assert report.json()["data_snapshot"]["total_emissions"] == pytest.approx(2.375)

    fetched = await client.get(f"{API}/calculations/{created.json()['id']}", headers=auth_headers)
    assert fetched.status_code == 200
    audited = await client.get(f"{API}/activity/", params={"category": "calculation"}, headers=auth_headers)
    assert audited.json() == []


@pytest.mark.asyncio
async def test_list_filter_and_breakdown(client: AsyncClient, auth_headers, electricity_payload):
    await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)
    await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)
    await client.post(
        f"{API}/calculations/",
        json={"inputs": {"type": "supply", "spend_usd": 1000, "category": "materials"}},
        headers=auth_headers,
    )

    supply = await client.get(f"{API}/calculations/", params={"type": "supply"}, headers=auth_headers)
    assert [c["type"] for c in supply.json()] == ["supply_chain"]

    breakdown = await client.get(f"{API}/calculations/breakdown", headers=auth_headers)
    assert breakdown.status_code == 200
    rows = {row["type"]: row for row in breakdown.json()}
    assert rows["electricity"]["emissions"] == pytest.approx(4.75)
    assert rows["electricity"]["count"] == 2
    assert rows["supply_chain"]["emissions"] == pytest.approx(0.95)


@pytest.mark.asyncio
async def test_factor_tables(client: AsyncClient):
    tables = await client.get(f"{API}/factors/")
    assert tables.json()["electricity_kg_per_kwh"]["grid"] == 0.475

    default = await client.get(f"{API}/factors/vehicle-default", params={"vehicle_class": "car", "fuel": "electric"})
    assert default.json() == {"vehicle_class": "car", "fuel": "electric", "efficiency": 18.0, "unit": "kWh/100km"}


# Dashboard
@pytest.mark.asyncio
async def test_dashboard_empty_history(client: AsyncClient, auth_headers):
    response = await client.get(f"{API}/dashboard/", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["has_data"] is False
    assert data["total_emissions"] == 0
    assert data["sustainability_score"] == 50
    assert data["fallback"] is False


@pytest.mark.asyncio
async def test_dashboard_summary_is_cached(client: AsyncClient, auth_headers, electricity_payload):
    await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)

    first = await client.get(f"{API}/dashboard/", headers=auth_headers)
    data = first.json()
    assert data["total_emissions"] == pytest.approx(2.38)
    assert data["monthly_emissions"] == pytest.approx(2.38)
    assert data["category_breakdown"] == {"electricity": pytest.approx(2.375)}
    assert len(data["trend_data"]) == 1
    assert data["total_calculations"] == 1

    # Served from the TTL cache until it expires
    await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)
    second = await client.get(f"{API}/dashboard/", headers=auth_headers)
    assert second.json()["total_calculations"] == 1


@pytest.mark.asyncio
async def test_dashboard_degrades_when_store_fails(client: AsyncClient, auth_headers, electricity_payload):
    await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)

    with patch.object(AsyncSession, "execute", new=AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("store down")))):
        degraded = await client.get(f"{API}/dashboard/", headers=auth_headers)

    assert degraded.status_code == 200
    data = degraded.json()
    assert data["fallback"] is True
    assert data["has_data"] is False
    assert data["total_emissions"] == 0

    # The degraded summary is not cached
    recovered = await client.get(f"{API}/dashboard/", headers=auth_headers)
    assert recovered.json()["fallback"] is False
    assert recovered.json()["total_calculations"] == 1


# Goals
@pytest.mark.asyncio
async def test_goal_lifecycle(client: AsyncClient, auth_headers):
    deadline = (utcnow() + timedelta(days=90)).isoformat()
    created = await client.post(
        f"{API}/goals/",
        json={
            "title": "Cut fleet fuel",
            "category": "transport",
            "target": 100,
            "target_type": "absolute",
            "current": 40,
            "deadline": deadline,
            "milestones": [{"value": 25}, {"value": 75}],
        },
        headers=auth_headers,
    )
    assert created.status_code == 201
    goal = created.json()
    assert goal["status"] == "active"
    assert goal["progress"] == pytest.approx(40)
    assert [m["reached"] for m in goal["milestones"]] == [True, False]

    updated = await client.put(f"{API}/goals/{goal['id']}", json={"current": 100}, headers=auth_headers)
    assert updated.status_code == 200
    assert updated.json()["status"] == "completed"
    assert all(m["reached"] for m in updated.json()["milestones"])

    completed = await client.get(f"{API}/goals/", params={"status": "completed"}, headers=auth_headers)
    assert [g["id"] for g in completed.json()] == [goal["id"]]

    dashboard = await client.get(f"{API}/dashboard/", headers=auth_headers)
    assert dashboard.json()["sustainability_score"] == 55

    assert (await client.delete(f"{API}/goals/{goal['id']}", headers=auth_headers)).status_code == 204
    assert (await client.get(f"{API}/goals/{goal['id']}", headers=auth_headers)).status_code == 404


@pytest.mark.asyncio
async def test_past_deadline_goal_is_overdue(client: AsyncClient, auth_headers):
    created = await client.post(
        f"{API}/goals/",
        json={
            "title": "Late goal",
            "category": "energy",
            "target": 25,
            "target_type": "percentage",
            "baseline": 1000,
            "current": 10,
            "deadline": (utcnow() - timedelta(days=1)).isoformat(),
        },
        headers=auth_headers,
    )
    assert created.status_code == 201
    assert created.json()["status"] == "overdue"


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["current", "target", "title", "category", "target_type", "status", "deadline"])
async def test_goal_update_rejects_null_for_required_fields(client: AsyncClient, auth_headers, field):
    created = await client.post(
        f"{API}/goals/",
        json={
            "title": "Cut fleet fuel",
            "category": "transport",
            "target": 100,
            "target_type": "absolute",
            "current": 40,
            "deadline": (utcnow() + timedelta(days=90)).isoformat(),
        },
        headers=auth_headers,
    )
    goal_id = created.json()["id"]

    response = await client.put(f"{API}/goals/{goal_id}", json={field: None}, headers=auth_headers)
    assert response.status_code == 422

    unchanged = (await client.get(f"{API}/goals/{goal_id}", headers=auth_headers)).json()
    assert unchanged["current"] == 40
    assert unchanged["status"] == "active"

    # Nullable fields can still be cleared
    cleared = await client.put(f"{API}/goals/{goal_id}", json={"description": None}, headers=auth_headers)
    assert cleared.status_code == 200


# Reports
@pytest.mark.asyncio
async def test_report_snapshot_pdf_and_download_count(client: AsyncClient, auth_headers, electricity_payload):
    await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)
    await client.post(
        f"{API}/calculations/",
        json={"inputs": {"type": "vehicle", "vehicle_class": "car", "fuel": "petrol", "efficiency": 8.5, "distance_km": 15000}},
        headers=auth_headers,
    )

    created = await client.post(f"{API}/reports/", headers=auth_headers)
    assert created.status_code == 201
    report = created.json()
    snapshot = report["data_snapshot"]
    assert report["title"].startswith("Carbon Report - ")
    assert report["summary"] == "Total Emissions: 5.32 tCO2e. Top source: vehicle."
    assert snapshot["total_emissions"] == pytest.approx(sum(c["emissions"] for c in snapshot["recent_calcs"]))
    assert len(snapshot["recent_calcs"]) == 2
    assert report["download_count"] == 0

    pdf = await client.get(f"{API}/reports/{report['id']}/pdf", headers=auth_headers)
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert "attachment" in pdf.headers["content-disposition"]
    assert pdf.content.startswith(b"%PDF")

    fetched = await client.get(f"{API}/reports/{report['id']}", headers=auth_headers)
    assert fetched.json()["download_count"] == 1

    listing = await client.get(f"{API}/reports/", headers=auth_headers)
    assert [r["id"] for r in listing.json()] == [report["id"]]

    assert (await client.delete(f"{API}/reports/{report['id']}", headers=auth_headers)).status_code == 204
    assert (await client.get(f"{API}/reports/{report['id']}", headers=auth_headers)).status_code == 404


@pytest.mark.asyncio
async def test_report_is_frozen_against_later_edits(client: AsyncClient, auth_headers, electricity_payload):
    created = await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)
    report = (await client.post(f"{API}/reports/", json={}, headers=auth_headers)).json()

    await client.delete(f"{API}/calculations/{created.json()['id']}", headers=auth_headers)

    fetched = await client.get(f"{API}/reports/{report['id']}", headers=auth_headers)
    assert fetched.json()["data_snapshot"]["total_emissions"] == pytest.approx(2.375)


@pytest.mark.asyncio
async def test_custom_report_snapshot(client: AsyncClient, auth_headers):
    created = await client.post(
        f"{API}/reports/",
        json={"data_snapshot": {"total_emissions": 3.0, "by_type": {"vehicle": 3.0}, "recent_calcs": []}},
        headers=auth_headers,
    )
    assert created.status_code == 201
    assert created.json()["summary"] == "Custom Report"
    assert created.json()["data_snapshot"]["by_type"] == {"vehicle": 3.0}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "snapshot",
    [
        {"total_emissions": 1.0, "by_type": {"bogus": 1.0}, "recent_calcs": []},
        {"total_emissions": 0.0, "by_type": {"vehicle": -5.0}, "recent_calcs": []},
        {"total_emissions": 1.0, "by_type": {}, "recent_calcs": []},
        {
            "total_emissions": 9.0,
            "by_type": {"vehicle": 2.0},
            "recent_calcs": [{"type": "vehicle", "emissions": 2.0}],
        },
        {
            "total_emissions": 2.0,
            "by_type": {"vehicle": 2.0},
            "recent_calcs": [{"type": "teleport", "emissions": 2.0}],
        },
    ],
)
async def test_custom_report_snapshot_is_validated(client: AsyncClient, auth_headers, snapshot):
    response = await client.post(f"{API}/reports/", json={"data_snapshot": snapshot}, headers=auth_headers)
    assert response.status_code == 422
    assert (await client.get(f"{API}/reports/", headers=auth_headers)).json() == []


@pytest.mark.asyncio
async def test_custom_report_snapshot_accepts_legacy_supply_key(client: AsyncClient, auth_headers):
    created = await client.post(
        f"{API}/reports/",
        json={
            "data_snapshot": {
                "total_emissions": 1.5,
                "by_type": {"supply": 1.5},
                "recent_calcs": [{"type": "supply", "emissions": 1.0}, {"type": "supply_chain", "emissions": 0.5}],
            }
        },
        headers=auth_headers,
    )
    assert created.status_code == 201
    snapshot = created.json()["data_snapshot"]
    assert snapshot["by_type"] == {"supply_chain": 1.5}
    assert {calc["type"] for calc in snapshot["recent_calcs"]} == {"supply_chain"}


@pytest.mark.asyncio
async def test_report_created_when_latest_analysis_unavailable(client: AsyncClient, auth_headers, electricity_payload):
    await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)
    assert (await client.post(f"{API}/insights/generate", headers=auth_headers)).status_code == 201

    execute = AsyncSession.execute

    async def execute_without_analyses(self, statement, *args, **kwargs):
        if "ai_analyses" in str(statement):
            raise OperationalError(str(statement), {}, Exception("store down"))
        return await execute(self, statement, *args, **kwargs)

    with patch.object(AsyncSession, "execute", new=execute_without_analyses):
        created = await client.post(f"{API}/reports/", headers=auth_headers)

    assert created.status_code == 201
    report = created.json()
    assert report["ai_insights_snapshot"] is None
    assert report["data_snapshot"]["total_emissions"] == pytest.approx(2.375)


@pytest.mark.asyncio
async def test_expired_reports_are_hidden_and_purged(client: AsyncClient, db: AsyncSession, auth_headers):
    me = (await client.get(f"{API}/auth/me", headers=auth_headers)).json()
    expired = Report(
        user_id=me["id"],
        title="Old report",
        type="pdf",
        data_snapshot={"total_emissions": 0, "by_type": {}, "recent_calcs": []},
        expires_at=utcnow() - timedelta(days=1),
    )
    db.add(expired)
    await db.commit()

    assert (await client.get(f"{API}/reports/", headers=auth_headers)).json() == []
    assert (await client.get(f"{API}/reports/{expired.id}", headers=auth_headers)).status_code == 404
    assert await purge_expired_reports(db) == 1


# Insights
@pytest.mark.asyncio
async def test_generate_analysis_falls_back_without_api_key(client: AsyncClient, auth_headers, electricity_payload):
    assert (await client.get(f"{API}/insights/latest", headers=auth_headers)).status_code == 404

    await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)
    generated = await client.post(f"{API}/insights/generate", headers=auth_headers)
    assert generated.status_code == 201
    analysis = generated.json()
    assert analysis["source"] == "fallback"
    assert analysis["engine_used"] is None
    assert analysis["recommendations"]

    latest = await client.get(f"{API}/insights/latest", headers=auth_headers)
    assert latest.json()["id"] == analysis["id"]

    history = await client.get(f"{API}/insights/history", headers=auth_headers)
    assert len(history.json()) == 1

    # New reports carry the latest analysis
    report = (await client.post(f"{API}/reports/", headers=auth_headers)).json()
    assert report["ai_insights_snapshot"]["summary"] == analysis["summary"]


@pytest.mark.asyncio
async def test_generate_analysis_for_empty_history(client: AsyncClient, auth_headers):
    generated = await client.post(f"{API}/insights/generate", headers=auth_headers)
    assert generated.status_code == 201
    assert generated.json()["source"] == "empty"


@pytest.mark.asyncio
async def test_rule_insights_and_engine_info(client: AsyncClient, auth_headers, electricity_payload):
    await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)

    rules = await client.get(f"{API}/insights/rules", headers=auth_headers)
    assert rules.status_code == 200
    assert rules.json()[0]["title"] == "electricity is your largest emission source"

    engine = await client.get(f"{API}/insights/engine", headers=auth_headers)
    assert "openai" in engine.json()["available_engines"]


@pytest.mark.asyncio
async def test_stored_insights_dedupe_filter_and_dismiss(
    client: AsyncClient, auth_headers, other_headers, electricity_payload
):
    assert (await client.post(f"{API}/insights/rules", headers=auth_headers)).json() == []

    await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)
    generated = await client.post(f"{API}/insights/rules", headers=auth_headers)
    assert generated.status_code == 201
    titles = [insight["title"] for insight in generated.json()]
    assert titles == ["electricity is your largest emission source", "Limited data for analysis"]

    # Undismissed titles are not stored twice
    assert (await client.post(f"{API}/insights/rules", headers=auth_headers)).json() == []

    listed = (await client.get(f"{API}/insights/", headers=auth_headers)).json()
    assert [insight["priority"] for insight in listed] == ["high", "low"]

    data_quality = await client.get(f"{API}/insights/", params={"category": "data_quality"}, headers=auth_headers)
    [limited] = data_quality.json()
    assert limited["title"] == "Limited data for analysis"

    assert (await client.put(f"{API}/insights/{limited['id']}", json={"dismissed": True}, headers=other_headers)).status_code == 404

    dismissed = await client.put(f"{API}/insights/{limited['id']}", json={"dismissed": True}, headers=auth_headers)
    assert dismissed.status_code == 200
    assert dismissed.json()["dismissed"] is True
    assert dismissed.json()["dismissed_at"] is not None

    open_only = (await client.get(f"{API}/insights/", headers=auth_headers)).json()
    assert [insight["category"] for insight in open_only] == ["emissions"]
    everything = (await client.get(f"{API}/insights/", params={"dismissed": "true"}, headers=auth_headers)).json()
    assert len(everything) == 2

    # A dismissed title may be raised again
    regenerated = (await client.post(f"{API}/insights/rules", headers=auth_headers)).json()
    assert [insight["title"] for insight in regenerated] == ["Limited data for analysis"]

    restored = await client.put(f"{API}/insights/{limited['id']}", json={"dismissed": False}, headers=auth_headers)
    assert restored.json()["dismissed_at"] is None


@pytest.mark.asyncio
async def test_ai_generation_is_rate_limited(client: AsyncClient, auth_headers):
    with patch("aetherra.core.config.settings.RATE_LIMIT_AI_MAX", 1):
        first = await client.post(f"{API}/insights/generate", headers=auth_headers)
        second = await client.post(f"{API}/insights/generate", headers=auth_headers)

    assert first.status_code == 201
    assert second.status_code == 429
    assert int(second.headers["retry-after"]) >= 1


# Activity
@pytest.mark.asyncio
async def test_activity_log(client: AsyncClient, auth_headers, electricity_payload):
    await client.post(f"{API}/calculations/", json=electricity_payload, headers=auth_headers)

    everything = await client.get(f"{API}/activity/", headers=auth_headers)
    assert everything.status_code == 200
    categories = {entry["category"] for entry in everything.json()}
    assert {"auth", "calculation"} <= categories

    calculations = await client.get(f"{API}/activity/", params={"category": "calculation"}, headers=auth_headers)
    entries = calculations.json()
    assert len(entries) == 1
    assert entries[0]["action"] == "Added electricity calculation"
    assert entries[0]["details"]["emissions"] == pytest.approx(2.375)
