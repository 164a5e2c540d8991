from conftest import auth_headers
from core.config import settings
from models.user import UserRole

API = settings.API_PREFIX


def mdt_body(specialty_ids, member_ids=(), name="Chest pain case"):
    return {
        "name": name,
        "patient_profile": {
            "age": 54,
            "gender": "MALE",
            "unique_id": "PAT-001",
            "medical_history": "Hypertension",
            "case_summary": "Recurrent chest pain",
            "medications": [{"name": "Aspirin", "dosage": "75mg"}],
        },
        "local_doctor_ids": [str(i) for i in member_ids],
        "required_specialty_ids": list(specialty_ids),
    }


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] in {"healthy", "degraded"}


async def test_specialties_are_public(client):
    response = await client.get(f"{API}/specialties")
    assert response.status_code == 200
    names = [s["name"] for s in response.json()]
    assert "Cardiology" in names and names == sorted(names)


async def test_signup_login_and_me(client, specialty_ids):
    external = await client.post(
        f"{API}/auth/signup",
        json={
            "first_name": "Bea",
            "last_name": "Specialist",
            "email": "bea@clinic.org",
            "password": "Str0ngPass",
            "role": "EXTERNAL",
            "specialties": [specialty_ids["Oncology"]],
            "professional_registration_number": "GMC-1",
        },
    )
    assert external.status_code == 201
    code = external.json()["referral_code"]
    assert "hashed_password" not in external.json()

    check = await client.get(f"{API}/auth/validate-referral", params={"code": code})
    assert check.status_code == 200
    assert check.json()["referrer_name"] == "Bea Specialist"

    local = await client.post(
        f"{API}/auth/signup",
        json={
            "first_name": "Ada",
            "last_name": "Local",
            "email": "ada@clinic.org",
            "password": "Str0ngPass",
            "role": "LOCAL",
            "hospital": "City Hospital",
            "referral_code": code,
        },
    )
    assert local.status_code == 201
    assert local.json()["referred_by_id"] == external.json()["id"]

    login = await client.post(
        f"{API}/auth/login", json={"email": "ada@clinic.org", "password": "Str0ngPass"}
    )
    assert login.status_code == 200
    token = login.json()["access_token"]
    assert login.json()["user"]["role"] == "LOCAL"

    me = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "ada@clinic.org"


async def test_error_status_mapping(client, make_user):
    bad_referral = await client.post(
        f"{API}/auth/signup",
        json={
            "first_name": "Ada",
            "last_name": "Local",
            "email": "ada@clinic.org",
            "password": "Str0ngPass",
            "role": "LOCAL",
            "hospital": "City Hospital",
            "referral_code": "NOPE0000",
        },
    )
    assert bad_referral.status_code == 400
    assert bad_referral.json()["type"] == "InvalidReferralError"

    for code in ("NOTACODE9", None):
        response = await client.post(
            f"{API}/auth/signup",
            json={
                "first_name": "Ada",
                "last_name": "Local",
                "email": "ada@clinic.org",
                "password": "Str0ngPass",
                "role": "LOCAL",
                "hospital": "City Hospital",
                "referral_code": code,
            },
        )
        assert response.status_code == 400
        assert response.json()["type"] == "InvalidReferralError"

    assert (await client.get(f"{API}/auth/me")).status_code == 401
    assert (
        await client.get(f"{API}/auth/me", headers={"Authorization": "Bearer junk"})
    ).status_code == 401

    bad_login = await client.post(
        f"{API}/auth/login", json={"email": "nobody@clinic.org", "password": "Whatever1"}
    )
    assert bad_login.status_code == 401
    assert set(bad_login.json()) == {"message", "type", "status"}

    external = await make_user(role=UserRole.EXTERNAL)
    forbidden = await client.get(f"{API}/users/local", headers=auth_headers(external))
    assert forbidden.status_code == 403


async def test_mdt_lifecycle_over_http(client, make_user, specialty_ids):
    creator = await make_user(role=UserRole.LOCAL, first_name="Amir")
    peer = await make_user(role=UserRole.LOCAL, first_name="Bola")
    specialist = await make_user(
        role=UserRole.EXTERNAL, specialties=["Cardiology"], first_name="Cara"
    )
    outsider = await make_user(role=UserRole.LOCAL, first_name="Omar")

    peers = await client.get(f"{API}/users/local", headers=auth_headers(creator))
    assert {p["id"] for p in peers.json()} == {str(peer.id), str(outsider.id)}

    created = await client.post(
        f"{API}/mdts",
        json=mdt_body([specialty_ids["Cardiology"]], [peer.id]),
        headers=auth_headers(creator),
    )
    assert created.status_code == 201
    mdt = created.json()
    assert {m["id"] for m in mdt["members"]} == {str(creator.id), str(peer.id)}
    assert len(mdt["invitations"]) == 1

    assert (
        await client.get(f"{API}/mdts/{mdt['id']}", headers=auth_headers(outsider))
    ).status_code == 404

    pending = await client.get(f"{API}/invitations", headers=auth_headers(specialist))
    assert len(pending.json()) == 1
    invitation_id = pending.json()[0]["id"]
    assert pending.json()[0]["mdt"]["name"] == "Chest pain case"

    accepted = await client.patch(
        f"{API}/invitations/{invitation_id}",
        json={"status": "ACCEPTED"},
        headers=auth_headers(specialist),
    )
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "ACCEPTED"

    again = await client.patch(
        f"{API}/invitations/{invitation_id}",
        json={"status": "DECLINED"},
        headers=auth_headers(specialist),
    )
    assert again.status_code == 409

    posted = await client.post(
        f"{API}/mdts/{mdt['id']}/messages",
        json={"content": "  Echo booked for Monday  "},
        headers=auth_headers(specialist),
    )
    assert posted.status_code == 201
    assert posted.json()["content"] == "Echo booked for Monday"

    history = await client.get(
        f"{API}/mdts/{mdt['id']}/messages", headers=auth_headers(creator)
    )
    assert history.status_code == 200
    assert history.headers["X-Poll-Interval"] == str(settings.MESSAGE_POLL_INTERVAL_SECONDS)
    assert [m["author"]["id"] for m in history.json()] == [str(specialist.id)]

    too_long = await client.post(
        f"{API}/mdts/{mdt['id']}/messages",
        json={"content": "y" * 2001},
        headers=auth_headers(creator),
    )
    assert too_long.status_code == 422

    listing = await client.get(f"{API}/mdts", headers=auth_headers(creator))
    assert listing.json()[0]["last_message"]["content"] == "Echo booked for Monday"

    detail = await client.get(f"{API}/mdts/{mdt['id']}", headers=auth_headers(specialist))
    assert detail.json()["required_specialties"][0]["filled"] is True

    assert (
        await client.put(
            f"{API}/mdts/{mdt['id']}",
            json={"name": "Hijacked"},
            headers=auth_headers(peer),
        )
    ).status_code == 403

    renamed = await client.put(
        f"{API}/mdts/{mdt['id']}",
        json={"name": "Chest pain follow-up"},
        headers=auth_headers(creator),
    )
    assert renamed.json()["name"] == "Chest pain follow-up"

    archived = await client.patch(
        f"{API}/mdts/{mdt['id']}/status",
        json={"status": "ARCHIVED"},
        headers=auth_headers(creator),
    )
    assert archived.json()["status"] == "ARCHIVED"
    assert (await client.get(f"{API}/mdts", headers=auth_headers(creator))).json() == []

    deleted = await client.delete(f"{API}/mdts/{mdt['id']}", headers=auth_headers(creator))
    assert deleted.status_code == 200
    assert (
        await client.get(f"{API}/mdts/{mdt['id']}", headers=auth_headers(creator))
    ).status_code == 404


async def test_create_mdt_with_unknown_specialty_is_422(client, make_user):
    creator = await make_user(role=UserRole.LOCAL)

    response = await client.post(
        f"{API}/mdts", json=mdt_body([9999]), headers=auth_headers(creator)
    )

    assert response.status_code == 422
    assert (await client.get(f"{API}/mdts", headers=auth_headers(creator))).json() == []


async def test_direct_invite_and_cancel_over_http(client, make_user):
    creator = await make_user(role=UserRole.LOCAL)
    guest = await make_user(role=UserRole.EXTERNAL, email="guest@clinic.org")
    created = await client.post(
        f"{API}/mdts", json=mdt_body([]), headers=auth_headers(creator)
    )
    mdt_id = created.json()["id"]

    invited = await client.post(
        f"{API}/invitations",
        json={"mdt_id": mdt_id, "receiver_email": "guest@clinic.org"},
        headers=auth_headers(creator),
    )
    assert invited.status_code == 201
    invitation_id = invited.json()["id"]
    assert invited.json()["specialty"] is None

    duplicate = await client.post(
        f"{API}/invitations",
        json={"mdt_id": mdt_id, "receiver_email": "guest@clinic.org"},
        headers=auth_headers(creator),
    )
    assert duplicate.status_code == 409

    seen = await client.get(
        f"{API}/invitations/{invitation_id}", headers=auth_headers(guest)
    )
    assert seen.status_code == 200
    assert seen.json()["mdt"]["patient_profile"]["medications"][0]["name"] == "Aspirin"

    assert (
        await client.delete(
            f"{API}/invitations/{invitation_id}", headers=auth_headers(guest)
        )
    ).status_code == 403

    cancelled = await client.delete(
        f"{API}/invitations/{invitation_id}", headers=auth_headers(creator)
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"
    assert (await client.get(f"{API}/invitations", headers=auth_headers(guest))).json() == []


async def test_extract_endpoint_validates_source(client, make_user):
    creator = await make_user(role=UserRole.LOCAL)

    response = await client.post(
        f"{API}/mdts/extract",
        json={"source": "video", "file_url": "https://files.example.org/a.mp4"},
        headers=auth_headers(creator),
    )

    assert response.status_code == 422
    body = response.json()
    assert body["type"] == "ValidationError"
    assert body["status"] == 422
    assert body["errors"]
