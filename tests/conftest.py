from typing import Callable, Dict, Iterator
from uuid import uuid4

import mongomock
import pytest
from fastapi.testclient import TestClient

from declutter_api.auth import issue_token
from declutter_api.main import create_app


@pytest.fixture()
def db():
    return mongomock.MongoClient()[f"declutter_test_{uuid4().hex}"]


@pytest.fixture()
def client(db) -> Iterator[TestClient]:
    with TestClient(create_app(database=db)) as test_client:
        yield test_client


@pytest.fixture()
def auth() -> Callable[[str], Dict[str, str]]:
    def headers(email: str) -> Dict[str, str]:
        return {"Authorization": issue_token(email)}

    return headers


@pytest.fixture()
def make_post(client, auth):
    def create(email: str, **overrides) -> dict:
        body = {
            "name": "Desk lamp",
            "image": "data:image/png;base64,iVBORw0KGgo=",
            "reason": "Bought a new one",
            "category": "unused",
        }
        body.update(overrides)
        response = client.post("/posts", json=body, headers=auth(email))
        assert response.status_code == 201, response.text
        return response.json()["post"]

    return create
