import pytest


async def _create(client, user, name="Python Devs", **extra):
    response = await client.post("/api/v1/community/", json={"name": name, **extra}, headers=user.headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.mark.asyncio
async def test_create_community(client, alice):
    community = await _create(client, alice, "Python Devs", description="All things Python")

    assert community["slug"] == "python-devs"
    assert community["creator_id"] == alice.id
    assert community["members_count"] == 1

    response = await client.get(f"/api/v1/community/{community['id']}/membership", headers=alice.headers)
    assert response.json()["data"] == {"is_member": True, "role": "admin"}


@pytest.mark.asyncio
async def test_create_duplicate_community(client, alice, bob):
    await _create(client, alice, "Python Devs")

    response = await client.post("/api/v1/community/", json={"name": "python devs"}, headers=bob.headers)

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_create_community_needs_letters(client, alice):
    response = await client.post("/api/v1/community/", json={"name": "!!!"}, headers=alice.headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_community_by_id_or_slug(client, alice, bob):
    community = await _create(client, alice, "Rust Club")

    by_id = await client.get(f"/api/v1/community/{community['id']}", headers=bob.headers)
    by_slug = await client.get("/api/v1/community/rust-club", headers=bob.headers)

    assert by_id.json()["data"]["id"] == community["id"]
    assert by_slug.json()["data"]["id"] == community["id"]
    assert (await client.get("/api/v1/community/no-such-club", headers=bob.headers)).status_code == 404


@pytest.mark.asyncio
async def test_list_and_search_communities(client, alice, bob):
    small = await _create(client, alice, "Gardening")
    big = await _create(client, alice, "Cooking", description="recipes and gardening tips")
    await client.post(f"/api/v1/community/{big['id']}/join", headers=bob.headers)

    response = await client.get("/api/v1/community/", headers=bob.headers)
    assert [c["id"] for c in response.json()["data"]["communities"]] == [big["id"], small["id"]]

    response = await client.get("/api/v1/community/", params={"q": "garden"}, headers=bob.headers)
    assert response.json()["data"]["total"] == 2

    response = await client.get("/api/v1/community/", params={"q": "recipes"}, headers=bob.headers)
    assert [c["id"] for c in response.json()["data"]["communities"]] == [big["id"]]


@pytest.mark.asyncio
async def test_join_and_leave(client, alice, bob):
    community = await _create(client, alice)

    response = await client.post(f"/api/v1/community/{community['id']}/join", headers=bob.headers)
    assert response.status_code == 201
    membership = response.json()["data"]
    assert membership["role"] == "member"
    assert membership["community"]["members_count"] == 2

    response = await client.post(f"/api/v1/community/{community['id']}/join", headers=bob.headers)
    assert response.status_code == 409

    response = await client.post(f"/api/v1/community/{community['id']}/leave", headers=bob.headers)
    assert response.status_code == 200

    response = await client.get(f"/api/v1/community/{community['id']}", headers=bob.headers)
    assert response.json()["data"]["members_count"] == 1

    response = await client.post(f"/api/v1/community/{community['id']}/leave", headers=bob.headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_admin_cannot_leave(client, alice):
    community = await _create(client, alice)

    response = await client.post(f"/api/v1/community/{community['id']}/leave", headers=alice.headers)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_join_missing_community(client, bob):
    response = await client.post("/api/v1/community/999/join", headers=bob.headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_and_delete_require_admin(client, alice, bob):
    community = await _create(client, alice)
    await client.post(f"/api/v1/community/{community['id']}/join", headers=bob.headers)

    response = await client.put(f"/api/v1/community/{community['id']}", json={"name": "Hijacked"}, headers=bob.headers)
    assert response.status_code == 403

    response = await client.put(
        f"/api/v1/community/{community['id']}",
        json={"name": "Python People", "is_private": True},
        headers=alice.headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["slug"] == "python-people"
    assert response.json()["data"]["is_private"] is True

    response = await client.delete(f"/api/v1/community/{community['id']}", headers=bob.headers)
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/community/{community['id']}", headers=alice.headers)
    assert response.status_code == 200
    assert (await client.get(f"/api/v1/community/{community['id']}", headers=alice.headers)).status_code == 404

    response = await client.get("/api/v1/community/memberships", headers=bob.headers)
    assert response.json()["data"] == []


@pytest.mark.asyncio
async def test_members_and_roles(client, alice, bob, carol):
    community = await _create(client, alice)
    cid = community["id"]
    await client.post(f"/api/v1/community/{cid}/join", headers=bob.headers)
    await client.post(f"/api/v1/community/{cid}/join", headers=carol.headers)

    response = await client.get(f"/api/v1/community/{cid}/members", headers=bob.headers)
    members = response.json()["data"]["members"]
    assert [(m["user"]["id"], m["role"]) for m in members] == [
        (alice.id, "admin"),
        (bob.id, "member"),
        (carol.id, "member"),
    ]

    response = await client.get(f"/api/v1/community/{cid}/members", params={"role": "owner"}, headers=bob.headers)
    assert response.status_code == 400

    response = await client.put(
        f"/api/v1/community/{cid}/members/{bob.id}/role", json={"role": "moderator"}, headers=carol.headers
    )
    assert response.status_code == 403

    response = await client.put(
        f"/api/v1/community/{cid}/members/{bob.id}/role", json={"role": "moderator"}, headers=alice.headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["role"] == "moderator"

    response = await client.get(f"/api/v1/community/{cid}/members", params={"role": "moderator"}, headers=bob.headers)
    assert [m["user"]["id"] for m in response.json()["data"]["members"]] == [bob.id]

    # moderators remove members but not admins
    response = await client.delete(f"/api/v1/community/{cid}/members/{alice.id}", headers=bob.headers)
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/community/{cid}/members/{carol.id}", headers=bob.headers)
    assert response.status_code == 200

    response = await client.get(f"/api/v1/community/{cid}/membership", headers=carol.headers)
    assert response.json()["data"] == {"is_member": False, "role": None}
    response = await client.get(f"/api/v1/community/{cid}", headers=carol.headers)
    assert response.json()["data"]["members_count"] == 2


@pytest.mark.asyncio
async def test_update_role_validation(client, alice, bob):
    community = await _create(client, alice)
    cid = community["id"]

    response = await client.put(
        f"/api/v1/community/{cid}/members/{bob.id}/role", json={"role": "moderator"}, headers=alice.headers
    )
    assert response.status_code == 404

    await client.post(f"/api/v1/community/{cid}/join", headers=bob.headers)
    response = await client.put(
        f"/api/v1/community/{cid}/members/{bob.id}/role", json={"role": "king"}, headers=alice.headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_community_posts_and_feed(client, alice, bob, carol, post_tweet):
    community = await _create(client, alice)
    cid = community["id"]
    await client.post(f"/api/v1/community/{cid}/join", headers=bob.headers)

    alice_tweet = await post_tweet(alice, "welcome all")
    bob_tweet = await post_tweet(bob, "glad to be here")
    await post_tweet(carol, "not a member")

    response = await client.get(f"/api/v1/community/{cid}/posts", headers=carol.headers)
    assert response.status_code == 403

    response = await client.get(f"/api/v1/community/{cid}/posts", headers=bob.headers)
    assert [t["id"] for t in response.json()["data"]["tweets"]] == [bob_tweet["id"], alice_tweet["id"]]

    response = await client.get("/api/v1/community/feed", headers=bob.headers)
    assert [t["id"] for t in response.json()["data"]["tweets"]] == [bob_tweet["id"], alice_tweet["id"]]

    response = await client.get("/api/v1/community/feed", headers=carol.headers)
    assert response.json()["data"]["tweets"] == []


@pytest.mark.asyncio
async def test_joined_and_memberships(client, alice, bob):
    first = await _create(client, alice, "First")
    second = await _create(client, bob, "Second")
    await client.post(f"/api/v1/community/{second['id']}/join", headers=alice.headers)

    response = await client.get("/api/v1/community/joined", headers=alice.headers)
    assert [c["id"] for c in response.json()["data"]["communities"]] == [second["id"], first["id"]]

    response = await client.get("/api/v1/community/memberships", headers=alice.headers)
    assert [(m["community"]["id"], m["role"]) for m in response.json()["data"]] == [
        (second["id"], "member"),
        (first["id"], "admin"),
    ]


@pytest.mark.asyncio
async def test_last_admin_cannot_step_down(client, alice, bob):
    community = await _create(client, alice)
    cid = community["id"]
    await client.post(f"/api/v1/community/{cid}/join", headers=bob.headers)

    response = await client.put(
        f"/api/v1/community/{cid}/members/{alice.id}/role", json={"role": "member"}, headers=alice.headers
    )
    assert response.status_code == 400
    response = await client.get(f"/api/v1/community/{cid}/membership", headers=alice.headers)
    assert response.json()["data"]["role"] == "admin"

    # with a second admin in place the first one may step down
    await client.put(f"/api/v1/community/{cid}/members/{bob.id}/role", json={"role": "admin"}, headers=alice.headers)
    response = await client.put(
        f"/api/v1/community/{cid}/members/{alice.id}/role", json={"role": "member"}, headers=alice.headers
    )
    assert response.status_code == 200

    response = await client.put(f"/api/v1/community/{cid}", json={"description": "new hands"}, headers=bob.headers)
    assert response.status_code == 200
