import datetime

import pytest

from tripdesk import models
from tripdesk.crud import Collection

pytestmark = pytest.mark.anyio


# --- Listings ---
async def test_list_properties_with_metrics(client, seed, auth_headers):
    owner = await seed.user(name="Hamza Sheikh", role=models.UserRole.PROPERTY_OWNER)
    customer = await seed.user()
    listing = await seed.property(owner, created_at=models.utcnow() - datetime.timedelta(days=10))
    await seed.property(owner, name="Pending Loft", approval_status=models.ApprovalStatus.PENDING, city="Lahore")
    await seed.booking(customer, listing, status=models.BookingStatus.COMPLETED, total_price=3000.0)
    await seed.booking(customer, listing, status=models.BookingStatus.PENDING, total_price=1000.0)

    response = await client.get("/admin/listings/properties?status=active", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total_count"] == 1
    row = body["items"][0]
    assert row["id"] == listing.id
    assert row["display_status"] == "ACTIVE"
    assert row["booking_count"] == 2
    assert row["total_revenue"] == 3000.0
    assert row["days_active"] == 10
    assert row["utilization_rate"] == 20.0
    assert row["owner"]["name"] == "Hamza Sheikh"
    assert body["counts"] == {"active": 1, "inactive": 0, "pending": 1, "rejected": 0, "total": 2}
    assert body["cities"] == ["Karachi", "Lahore"]
    assert [top["id"] for top in body["top_performers"]] == [listing.id]


async def test_list_tours_and_vehicles(client, seed, auth_headers):
    guide = await seed.user(role=models.UserRole.TOUR_GUIDE)
    owner = await seed.user(role=models.UserRole.VEHICLE_OWNER)
    await seed.tour(guide)
    await seed.vehicle(owner)

    tours = (await client.get("/admin/listings/tours", headers=auth_headers)).json()
    vehicles = (await client.get("/admin/listings/vehicles?type=car", headers=auth_headers)).json()

    assert tours["items"][0]["title"] == "Hunza Valley Trek"
    assert tours["items"][0]["kind"] == "tours"
    assert vehicles["items"][0]["title"] == "Toyota Corolla"
    assert vehicles["items"][0]["type"] == "CAR"


async def test_unknown_listing_kind(client, auth_headers):
    response = await client.get("/admin/listings/boats", headers=auth_headers)
    assert response.status_code == 404


async def test_listing_action(client, seed, auth_headers, session_factory):
    guide = await seed.user(role=models.UserRole.TOUR_GUIDE)
    tour = await seed.tour(guide, approval_status=models.ApprovalStatus.PENDING)

    response = await client.post(
        f"/admin/listings/tours/{tour.id}/actions",
        json={"action": "request_changes", "reason": "Add an itinerary"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Changes requested for tour"
    stored = await Collection(models.Tour, session_factory).get(tour.id)
    assert stored.approval_status == models.ApprovalStatus.REQUIRES_CHANGES
    assert stored.rejection_reason == "Add an itinerary"


async def test_listing_reject_without_reason(client, seed, auth_headers):
    owner = await seed.user(role=models.UserRole.PROPERTY_OWNER)
    listing = await seed.property(owner, approval_status=models.ApprovalStatus.PENDING)

    response = await client.post(
        f"/admin/listings/properties/{listing.id}/actions", json={"action": "reject"}, headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Rejection reason is required",
        "code": "VALIDATION_ERROR",
    }


# --- Approvals ---
async def test_approval_queue_interleaves_kinds_newest_first(client, seed, auth_headers):
    owner = await seed.user(role=models.UserRole.PROPERTY_OWNER)
    guide = await seed.user(role=models.UserRole.TOUR_GUIDE)
    base = datetime.datetime(2026, 5, 1, 9, 0, 0)
    pending = models.ApprovalStatus.PENDING

    await seed.property(owner, approval_status=pending, created_at=base)
    await seed.tour(guide, approval_status=pending, created_at=base + datetime.timedelta(hours=1))
    await seed.property(owner, approval_status=pending, created_at=base + datetime.timedelta(hours=2))
    await seed.tour(guide, approval_status=pending, created_at=base + datetime.timedelta(hours=3))
    await seed.property(owner, created_at=base + datetime.timedelta(hours=4))  # approved, not queued

    first = (await client.get("/admin/approvals/?limit=3", headers=auth_headers)).json()
    second = (await client.get("/admin/approvals/?limit=3&page=2", headers=auth_headers)).json()

    assert [(item["kind"], item["created_at"][11:13]) for item in first["items"]] == [
        ("tours", "12"),
        ("properties", "11"),
        ("tours", "10"),
    ]
    assert [(item["kind"], item["created_at"][11:13]) for item in second["items"]] == [("properties", "09")]
    assert first["pagination"]["total_count"] == 4
    assert first["pagination"]["total_pages"] == 2
    assert first["kind_counts"] == {"properties": 2, "vehicles": 0, "tours": 2}
    assert first["status_counts"]["pending"] == 4
    assert first["status_counts"]["approved"] == 1


async def test_approval_queue_by_type(client, seed, auth_headers):
    owner = await seed.user(role=models.UserRole.VEHICLE_OWNER)
    guide = await seed.user(role=models.UserRole.TOUR_GUIDE)
    await seed.vehicle(owner, approval_status=models.ApprovalStatus.PENDING)
    await seed.tour(guide, approval_status=models.ApprovalStatus.PENDING)

    body = (await client.get("/admin/approvals/?type=vehicle", headers=auth_headers)).json()

    assert [item["kind"] for item in body["items"]] == ["vehicles"]
    assert body["pagination"]["total_count"] == 1


async def test_provider_verification(client, seed, auth_headers, session_factory):
    provider = await seed.user(role=models.UserRole.PROPERTY_OWNER, business_name="Sea Breeze Stays")
    await seed.user(role=models.UserRole.TOUR_GUIDE, verified=True)
    await seed.user()  # customers are never listed

    listed = (await client.get("/admin/approvals/providers", headers=auth_headers)).json()
    assert [row["id"] for row in listed["items"]] == [provider.id]
    assert listed["counts"] == {"pending": 1, "verified": 1, "rejected": 0, "suspended": 0, "total": 2}

    response = await client.post(
        f"/admin/approvals/providers/{provider.id}/actions", json={"action": "verify"}, headers=auth_headers
    )
    assert response.status_code == 200

    stored = await Collection(models.User, session_factory).get(provider.id)
    assert stored.verified is True

    everyone = (await client.get("/admin/approvals/providers?status=all", headers=auth_headers)).json()
    assert everyone["pagination"]["total_count"] == 2


# --- Reviews ---
async def test_review_moderation(client, seed, auth_headers):
    customer = await seed.user(name="Zara Iqbal")
    owner = await seed.user(role=models.UserRole.PROPERTY_OWNER)
    listing = await seed.property(owner)
    review = await seed.review(customer, listing, rating=2, is_flagged=True)
    await seed.review(customer, listing, rating=4)

    listed = (await client.get("/admin/reviews/?status=flagged", headers=auth_headers)).json()
    assert [item["id"] for item in listed["items"]] == [review.id]
    assert listed["items"][0]["listing"]["kind"] == "properties"
    assert listed["stats"]["total"] == 2
    assert listed["stats"]["average_rating"] == 3.0
    assert listed["rating_distribution"] == {"1": 0, "2": 1, "3": 0, "4": 1, "5": 0}
    assert listed["service_types"] == {"property": 2, "vehicle": 0, "tour": 0}

    response = await client.post(
        f"/admin/reviews/{review.id}/actions",
        json={"action": "hide", "reason": "Personal information"},
        headers=auth_headers,
    )
    assert response.status_code == 200

    hidden = (await client.get("/admin/reviews/?status=hidden", headers=auth_headers)).json()
    assert [item["hidden_reason"] for item in hidden["items"]] == ["Personal information"]


# --- Support ---
async def test_ticket_list_and_detail(client, seed, auth_headers, admin):
    customer = await seed.user()
    guide = await seed.user(role=models.UserRole.TOUR_GUIDE)
    ticket = await seed.ticket(customer, priority=models.TicketPriority.HIGH, category=models.TicketCategory.PAYMENT)
    await seed.ticket(guide, priority=models.TicketPriority.LOW)
    await seed.add(
        models.SupportMessage(ticket_id=ticket.id, sender_id=customer.id, sender_type=models.SenderType.USER, content="Any news?")
    )

    listed = (await client.get("/admin/support/tickets/?sort=priority", headers=auth_headers)).json()
    assert [item["priority"] for item in listed["items"]] == ["HIGH", "LOW"]
    assert listed["items"][0]["message_count"] == 1
    assert listed["status_counts"]["new"] == 2
    assert listed["priority_counts"] == {"low": 1, "medium": 0, "high": 1, "total": 2}
    assert listed["category_counts"]["payment"] == 1

    providers = (await client.get("/admin/support/tickets/?userType=provider", headers=auth_headers)).json()
    assert providers["pagination"]["total_count"] == 1

    response = await client.post(
        f"/admin/support/tickets/{ticket.id}/actions",
        json={"action": "assign", "assigneeId": admin.id},
        headers=auth_headers,
    )
    assert response.status_code == 200

    response = await client.post(
        f"/admin/support/tickets/{ticket.id}/actions",
        json={"action": "add_note", "message": "Checked with payments team"},
        headers=auth_headers,
    )
    assert response.status_code == 200

    detail = (await client.get(f"/admin/support/tickets/{ticket.id}", headers=auth_headers)).json()
    assert detail["status"] == "ASSIGNED"
    assert detail["assigned_to"]["id"] == admin.id
    assert [m["content"] for m in detail["messages"]] == [
        "Any news?",
        "Ticket assigned to Ayesha Admin",
        "Checked with payments team",
    ]
    assert detail["message_count"] == 3


async def test_missing_ticket(client, auth_headers):
    response = await client.get("/admin/support/tickets/77", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "Ticket 77 not found"


# --- Analytics ---
async def test_dashboard(client, seed, auth_headers):
    customer = await seed.user()
    owner = await seed.user(role=models.UserRole.PROPERTY_OWNER)
    listing = await seed.property(owner)
    await seed.property(owner, approval_status=models.ApprovalStatus.PENDING)
    await seed.booking(customer, listing, status=models.BookingStatus.COMPLETED, total_price=2500.0)
    await seed.ticket(customer)

    body = (await client.get("/admin/analytics/dashboard", headers=auth_headers)).json()

    # The seeded admin counts too
    assert body["users"] == {"total": 3, "customers": 1, "providers": 1, "admins": 1}
    assert body["listings"] == {"properties": 2, "vehicles": 0, "tours": 0}
    assert body["pending_approvals"] == {"providers": 1, "properties": 1, "vehicles": 0, "tours": 0}
    assert body["bookings"]["completed"] == 1
    assert body["bookings"]["total"] == 1
    assert body["open_tickets"] == 1
    assert body["total_revenue"] == 2500.0


async def test_growth_report(client, seed, auth_headers):
    customer = await seed.user()
    owner = await seed.user(role=models.UserRole.PROPERTY_OWNER)
    listing = await seed.property(owner)
    recent = models.utcnow() - datetime.timedelta(days=1)
    await seed.booking(customer, listing, status=models.BookingStatus.COMPLETED, total_price=800.0, created_at=recent)

    response = await client.get("/admin/analytics/growth?period=6", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["period"] == 6
    assert len(body["buckets"]) == 6
    assert body["buckets"][-1]["bookings"] == 1
    assert body["buckets"][-1]["revenue"] == 800.0
    # Nothing to compare against in the previous month
    assert body["growth_rates"]["bookings"] == 0.0
    assert len(body["forecast"]) == 3
    assert body["by_service_type"] == {"property": {"bookings": 1.0, "revenue": 800.0}}
    assert body["retention"]["customer_lifetime_value"] == 800.0


async def test_growth_period_is_bounded(client, auth_headers):
    response = await client.get("/admin/analytics/growth?period=0", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


# --- User directory ---
async def test_user_directory(client, seed, auth_headers):
    owner = await seed.user(role=models.UserRole.PROPERTY_OWNER, active=False)
    customer = await seed.user(name="Nadia Qureshi", phone="+92 321 5550000", verified=True)
    await seed.user(role=models.UserRole.SUPER_ADMIN)
    listing = await seed.property(owner)
    await seed.booking(customer, listing)
    await seed.booking(customer, listing)
    await seed.review(customer, listing)

    body = (await client.get("/admin/users?sort=name", headers=auth_headers)).json()

    # Super admins are counted but never listed
    assert body["pagination"]["total_count"] == 3
    assert [row["name"] for row in body["items"]][:2] == ["Ayesha Admin", "Nadia Qureshi"]
    assert body["role_counts"] == {
        "customer": 1,
        "property_owner": 1,
        "vehicle_owner": 0,
        "tour_guide": 0,
        "admin": 1,
        "super_admin": 1,
        "total": 4,
    }
    assert body["status_counts"] == {"verified": 1, "unverified": 3, "active": 3, "inactive": 1}

    customers = (await client.get("/admin/users?role=customer", headers=auth_headers)).json()
    assert len(customers["items"]) == 1
    row = customers["items"][0]
    assert row["id"] == customer.id
    assert row["booking_count"] == 2
    assert row["review_count"] == 1

    by_phone = (await client.get("/admin/users?search=5550000", headers=auth_headers)).json()
    assert [row["id"] for row in by_phone["items"]] == [customer.id]

    inactive = (await client.get("/admin/users?status=inactive", headers=auth_headers)).json()
    assert [row["id"] for row in inactive["items"]] == [owner.id]

    nonsense = (await client.get("/admin/users?status=banished", headers=auth_headers)).json()
    assert nonsense["pagination"]["total_count"] == 0


# --- Audit log ---
async def test_audit_log_viewer(client, seed, admin, auth_headers, token_for):
    second_admin = await seed.admin(name="Bilal Admin")
    customer = await seed.user()
    provider = await seed.user(role=models.UserRole.PROPERTY_OWNER)
    listing = await seed.property(provider)
    first = await seed.booking(customer, listing)
    second = await seed.booking(customer, listing)

    await client.post(
        f"/admin/approvals/providers/{provider.id}/actions", json={"action": "verify"}, headers=auth_headers
    )
    await client.post(
        f"/admin/bookings/{first.id}/actions",
        json={"action": "confirm"},
        headers={**auth_headers, "X-Forwarded-For": "198.51.100.4"},
    )
    await client.post(
        f"/admin/bookings/{second.id}/actions", json={"action": "cancel"}, headers=token_for(second_admin)
    )

    body = (await client.get("/admin/audit", headers=auth_headers)).json()

    assert body["pagination"]["total_count"] == 3
    ids = [row["id"] for row in body["items"]]
    assert ids == sorted(ids, reverse=True)
    assert body["action_counts"] == {"BOOKING_CANCEL": 1, "BOOKING_CONFIRM": 1, "PROVIDER_VERIFY": 1}
    assert [(row["actor_id"], row["count"]) for row in body["actor_counts"]] == [
        (admin.id, 2),
        (second_admin.id, 1),
    ]
    assert body["actor_counts"][0]["actor"]["name"] == "Ayesha Admin"

    def entries(query):
        return client.get(f"/admin/audit?{query}", headers=auth_headers)

    confirmed = (await entries("action=booking_confirm")).json()
    assert [row["resource_id"] for row in confirmed["items"]] == [first.id]

    by_id = (await entries(f"user={second_admin.id}")).json()
    assert [row["action"] for row in by_id["items"]] == ["BOOKING_CANCEL"]

    by_name = (await entries("user=ayesha")).json()
    assert by_name["pagination"]["total_count"] == 2

    by_ip = (await entries("search=198.51.100")).json()
    assert [row["action"] for row in by_ip["items"]] == ["BOOKING_CONFIRM"]

    providers = (await entries("resource=provider")).json()
    assert [row["resource_id"] for row in providers["items"]] == [provider.id]

    assert (await entries("dateFrom=2000-01-01")).json()["pagination"]["total_count"] == 3
    assert (await entries("dateTo=2000-01-01")).json()["pagination"]["total_count"] == 0


# --- Routing ---
@pytest.mark.parametrize(
    "path",
    [
        "/admin/bookings",
        "/admin/approvals",
        "/admin/reviews",
        "/admin/support/tickets",
        "/admin/users",
        "/admin/audit",
    ],
)
async def test_list_routes_answer_with_or_without_trailing_slash(client, auth_headers, path):
    for url in (path, f"{path}/"):
        response = await client.get(url, headers=auth_headers)
        assert response.status_code == 200, url
