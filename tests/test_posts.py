from bson import ObjectId

ALICE = "alice@example.com"
BOB = "bob@example.com"

POST_BODY = {
    "name": "Bicycle",
    "image": "https://img.example.com/bike.jpg",
    "reason": "Flat tyre, never fixed it",
    "category": "broken",
}


def test_create_post_returns_stored_record(client, auth):
    response = client.post("/posts", json=POST_BODY, headers=auth(ALICE))

    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "Post saved"
    post = data["post"]
    assert ObjectId.is_valid(post["id"])
    assert post["email"] == ALICE
    assert post["category"] == "broken"
    assert "createdAt" in post


def test_reason_may_be_exactly_30_characters(client, auth):
    body = {**POST_BODY, "category": "unused", "reason": "x" * 30}

    assert client.post("/posts", json=body, headers=auth(ALICE)).status_code == 201


def test_reason_longer_than_30_characters_is_rejected(client, auth, db):
    body = {**POST_BODY, "reason": "x" * 31}
    response = client.post("/posts", json=body, headers=auth(ALICE))

    assert response.status_code == 400
    assert response.json()["fields"] == ["reason"]
    assert db["post"].count_documents({}) == 0


def test_unknown_category_is_rejected(client, auth):
    body = {**POST_BODY, "category": "other"}
    response = client.post("/posts", json=body, headers=auth(ALICE))

    assert response.status_code == 400
    assert response.json()["fields"] == ["category"]


def test_japanese_category_label_is_normalised(client, auth):
    body = {**POST_BODY, "category": "飽きた"}
    response = client.post("/posts", json=body, headers=auth(ALICE))

    assert response.status_code == 201
    assert response.json()["post"]["category"] == "bored"


def test_all_fields_are_required(client, auth):
    for field in ("name", "image", "reason", "category"):
        body = {k: v for k, v in POST_BODY.items() if k != field}
        response = client.post("/posts", json=body, headers=auth(ALICE))
        assert response.status_code == 400, field


def test_create_post_requires_token(client):
    assert client.post("/posts", json=POST_BODY).status_code == 401


def test_my_posts_only_returns_callers_posts_newest_first(client, auth, make_post):
    make_post(ALICE, name="first")
    make_post(BOB, name="bobs")
    make_post(ALICE, name="second")
    make_post(ALICE, name="third")

    response = client.get("/posts/me", headers=auth(ALICE))

    assert response.status_code == 200
    posts = response.json()
    assert [p["name"] for p in posts] == ["third", "second", "first"]
    assert {p["email"] for p in posts} == {ALICE}
    created = [p["createdAt"] for p in posts]
    assert created == sorted(created, reverse=True)


def test_get_post_by_id(client, auth, make_post):
    post = make_post(BOB)

    response = client.get(f"/posts/{post['id']}", headers=auth(ALICE))

    assert response.status_code == 200
    assert response.json()["id"] == post["id"]


def test_get_unknown_post_is_404(client, auth):
    assert client.get(f"/posts/{ObjectId()}", headers=auth(ALICE)).status_code == 404
    assert client.get("/posts/not-an-id", headers=auth(ALICE)).status_code == 404


def test_get_post_requires_token(client, make_post):
    post = make_post(BOB)

    assert client.get(f"/posts/{post['id']}").status_code == 401


def test_delete_someone_elses_post_is_forbidden(client, auth, make_post, db):
    post = make_post(BOB)

    response = client.delete(f"/posts/{post['id']}", headers=auth(ALICE))

    assert response.status_code == 403
    assert db["post"].count_documents({"_id": ObjectId(post["id"])}) == 1


def test_owner_can_delete_post(client, auth, make_post):
    post = make_post(ALICE)

    response = client.delete(f"/posts/{post['id']}", headers=auth(ALICE))

    assert response.status_code == 200
    assert response.json() == {"message": "Post deleted"}
    assert client.get(f"/posts/{post['id']}", headers=auth(ALICE)).status_code == 404


def test_delete_unknown_post_is_404(client, auth):
    assert client.delete(f"/posts/{ObjectId()}", headers=auth(ALICE)).status_code == 404


def test_delete_leaves_comments_behind(client, auth, make_post, db):
    post = make_post(ALICE)
    client.post(f"/posts/{post['id']}/comments", json={"text": "nice"}, headers=auth(BOB))

    client.delete(f"/posts/{post['id']}", headers=auth(ALICE))

    assert db["comment"].count_documents({"post_id": ObjectId(post["id"])}) == 1


def test_posts_by_username_matches_posts_by_email(client, make_post):
    make_post(BOB, name="old chair")
    make_post(BOB, name="old table")
    make_post(ALICE, name="not bobs")

    by_username = client.get("/posts/user/bob")
    by_email = client.get(f"/posts/user-email/{BOB}")

    assert by_username.status_code == 200
    assert by_username.json() == by_email.json()
    assert [p["name"] for p in by_username.json()] == ["old table", "old chair"]


def test_posts_by_unknown_user_is_empty(client):
    response = client.get("/posts/user/nobody")

    assert response.status_code == 200
    assert response.json() == []


def test_created_at_is_the_same_on_create_and_read(client, auth, make_post):
    post = make_post(ALICE)

    fetched = client.get(f"/posts/{post['id']}", headers=auth(ALICE)).json()
    [listed] = client.get("/posts/me", headers=auth(ALICE)).json()

    assert fetched["createdAt"] == post["createdAt"]
    assert listed["createdAt"] == post["createdAt"]
    assert post["createdAt"].endswith("Z")
