from types import SimpleNamespace

import ai_chat
from test_reviews import live_product


class FakeModel:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def invoke(self, messages):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return SimpleNamespace(content=self.reply)


def test_chat_requires_message(client):
    res = client.post("/api/ai/chat", json={"message": "   "})
    assert res.status_code == 400
    assert res.json()["detail"] == "Message is required"


def test_chat_falls_back_to_templated_answer(client, make_shop, category_id):
    live_product(make_shop(), category_id, name="Gaming Laptop", price=900.0, is_hot_offer=True)

    res = client.post("/api/ai/chat", json={"message": "laptop"})
    assert res.status_code == 200
    body = res.json()
    assert body["response"].startswith("I found 1 product(s) related to your search:")
    assert "1. Gaming Laptop - 900.0 EGP" in body["response"]
    assert "Hot Offer" in body["response"]
    assert body["searchResults"][0]["type"] == "products"
    assert body["searchResults"][0]["data"][0]["averageRating"] == 2.5
    assert body["timestamp"]


def test_chat_without_results_lists_categories(client, category_id):
    res = client.post("/api/ai/chat", json={"message": "unicorn", "language": "ar"})
    assert res.json()["response"].startswith("لم أجد نتائج مطابقة لبحثك \"unicorn\".")
    assert "Electronics" in res.json()["response"]
    assert res.json()["searchResults"] == []


def test_chat_shop_query_searches_shops(client, make_shop):
    make_shop(name="Hub Store")
    body = client.post("/api/ai/chat", json={"message": "hub"}).json()
    assert body["searchResults"][0]["type"] == "shops"
    assert body["response"].startswith("I found 1 shop(s) related to your search:")


def test_chat_uses_llm_reply(client, monkeypatch, make_shop, category_id):
    live_product(make_shop(), category_id, name="Phone")
    model = FakeModel(reply="Here is the Phone from Shop 1.")
    monkeypatch.setattr(ai_chat, "get_chat_model", lambda name=None: model)

    history = [{"type": "user", "text": f"turn {i}"} for i in range(8)]
    res = client.post("/api/ai/chat", json={"message": "phone", "conversationHistory": history})
    assert res.json()["response"] == "Here is the Phone from Shop 1."

    messages = model.calls[0]
    assert messages[0].content == ai_chat.get_system_prompt("en")
    assert [m.content for m in messages[1:6]] == [f"turn {i}" for i in range(3, 8)]
    assert "Context from database" in messages[-2].content
    assert messages[-1].content == "phone"


def test_chat_survives_llm_failure(client, monkeypatch):
    monkeypatch.setattr(ai_chat, "get_chat_model", lambda name=None: FakeModel(error=RuntimeError("down")))
    res = client.post("/api/ai/chat", json={"message": "anything"})
    assert res.status_code == 200
    assert res.json()["response"].startswith("I couldn't find results matching \"anything\".")


def test_prompt_override_from_environment(client, monkeypatch):
    monkeypatch.setenv("AI_SYSTEM_PROMPT_EN", "Be brief.")
    assert client.get("/api/ai/prompt").json() == {"prompt": "Be brief.", "language": "en"}
    assert client.get("/api/ai/prompt?language=ar").json()["prompt"] == ai_chat.SYSTEM_PROMPTS["ar"]


def test_og_preview_for_product(client, make_shop, category_id):
    product_id = live_product(make_shop(), category_id, name="Lamp <b>Pro</b>", description="<p>Bright</p> light",
                              image="uploads/lamp.png")
    res = client.get(f"/api/meta/og/html?path=/product/{product_id}")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/html")
    assert '<meta property="og:title" content="Lamp &lt;b&gt;Pro&lt;/b&gt;">' in res.text
    assert '<meta property="og:description" content="Bright light">' in res.text
    assert '<meta property="product:price:currency" content="EGP">' in res.text
    assert 'uploads/lamp.png"' in res.text


def test_og_preview_for_shop_and_missing(client, make_shop):
    shop_id = make_shop()
    res = client.get(f"/api/meta/og/html?path=shop/shop-{shop_id}")
    assert "Shop 1 - Electronics - Shop at iDream Mall" in res.text

    missing = client.get("/api/meta/og/html?path=/product/64b7f0000000000000000000")
    assert missing.status_code == 404
    assert "<title>Not Found</title>" in missing.text

    home = client.get("/api/meta/og/html?path=/")
    assert "<title>iDream Portal</title>" in home.text


def test_health(client):
    body = client.get("/api/health").json()
    assert body == {"status": "OK", "message": "iDream API is running", "database": "connected"}
