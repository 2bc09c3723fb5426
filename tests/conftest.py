import os

os.environ["JWT_SECRET"] = "test-secret"
os.environ["OPENAI_API_KEY"] = ""
os.environ["DATABASE_NAME"] = "idream_test"
os.environ.pop("SUPERADMIN_EMAIL", None)

import mongomock  # noqa: E402
import pymongo  # noqa: E402

# the app binds MongoClient at import time
pymongo.MongoClient = mongomock.MongoClient

import pytest  # noqa: E402
from bson import ObjectId  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from database import create_document, db  # noqa: E402
from main import app  # noqa: E402
from schemas import Category, Shop, User  # noqa: E402
from security import create_access_token, get_password_hash  # noqa: E402
from seed import ensure_default_role  # noqa: E402

PASSWORD = "secret123"


def _drop_all():
    for name in db.list_collection_names():
        db.drop_collection(name)


@pytest.fixture
def client():
    _drop_all()
    with TestClient(app) as c:
        yield c
    _drop_all()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(client):
    """Create a user with a seeded role; returns (user_id, headers)."""
    counter = {"n": 0}

    def _make(role: str, **fields):
        counter["n"] += 1
        role_doc = ensure_default_role(role)
        data = {
            "email": f"{role.lower()}{counter['n']}@example.com",
            "password": get_password_hash(PASSWORD),
            "phone": f"+2010000000{counter['n']:02d}",
            "role_id": role_doc["id"],
            "is_active": True,
            "is_email_verified": True,
        }
        data.update(fields)
        user_id = create_document("user", User(**data))
        return user_id, auth_headers(create_access_token({"id": user_id}))

    return _make


@pytest.fixture
def category_id(client):
    return create_document("category", Category(name="Electronics", order=0))


@pytest.fixture
def make_shop(category_id):
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        data = {
            "name": f"Shop {counter['n']}",
            "email": f"shop{counter['n']}@example.com",
            "mobile": "+201000000000",
            "whatsapp": "+201000000000",
            "category_id": category_id,
            "is_active": True,
            "is_approved": True,
        }
        data.update(fields)
        shop_id = create_document("shop", Shop(**data))
        db["shop"].update_one({"_id": ObjectId(shop_id)}, {"$set": {"share_link": f"shop-{shop_id}"}})
        return shop_id

    return _make
