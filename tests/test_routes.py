import pytest
from fastapi.testclient import TestClient

from swapper.domain.errors import InvalidInputError
from swapper.main import create_app
from swapper.services.history import HistoryStore, MemoryKeyValueStore
from swapper.services.utils import BoundedRegistry

from conftest import A, ACCOUNT, CONTRACT, G, W, units


@pytest.fixture
def client(session, aliases):
    def factory(contract_address):
        if contract_address.lower() != CONTRACT.lower():
            raise InvalidInputError("Invalid contract address format", contract_address=contract_address)
        return session

    app = create_app(
        session_factory=factory,
        history=HistoryStore(MemoryKeyValueStore(), key="swapHistory"),
        aliases=aliases,
    )
    return TestClient(app)


def _swap_body(amount="10", token_in=A):
    return {"token_in": token_in, "token_out": G, "amount_in": amount, "contract_address": CONTRACT}


def test_healthz_and_tokens(client):
    assert client.get("/healthz").json() == {"status": "ok"}
    body = client.get("/api/tokens").json()
    assert body["tokens"]["WAPLO"]["address"].lower() == W
    assert body["aliases"] == {"source": A, "wrapped": W}


def test_preview(client, session):
    session.add_pool(W, G, units(100), units(100))
    session.set_balance(A, units(20))

    r = client.post("/api/swap/preview", json={
        "contract_address": CONTRACT, "token_in": A, "token_out": G, "amount": "10",
    })

    assert r.status_code == 200
    body = r.json()
    assert body["can_swap"] is True
    assert body["resolution"]["effective_token_in"].lower() == W.lower()
    assert body["estimated_output"] is not None


def test_unknown_contract_is_bad_request(client):
    r = client.post("/api/swap/preview", json={"contract_address": "0xnope"})
    assert r.status_code == 400
    assert r.json()["detail"]["error_type"] == "InvalidInput"


def test_execute_then_history(client, session):
    session.add_pool(W, G, units(100), units(100))
    session.set_balance(W, units(20))

    r = client.post("/api/swap/execute", json=_swap_body(token_in=W))
    assert r.status_code == 200
    assert r.json()["state"] == "Confirmed"

    history = client.get("/api/swap/history").json()["history"]
    assert len(history) == 1 and history[0]["amount_in"] == "10"

    r = client.post("/api/swap/history/0/use")
    assert r.status_code == 200
    assert r.json()["request"]["amount_in"] == "10"
    assert len(r.json()["history"]) == 2

    assert client.post("/api/swap/history/9/use").status_code == 404
    assert client.delete("/api/swap/history").json() == {"history": []}
    assert client.get("/api/swap/history").json() == {"history": []}


def test_failures_map_to_status_codes(client, session):
    r = client.post("/api/swap/execute", json=_swap_body())
    assert r.status_code == 404
    assert r.json()["detail"]["error_type"] == "PoolNotFound"

    r = client.post("/api/swap/execute", json=_swap_body(amount="-3"))
    assert r.status_code == 400

    session.add_pool(W, G, units(100), units(100))
    session.set_balance(W, units(20))
    session.swap_reverts = True
    r = client.post("/api/swap/execute", json=_swap_body(token_in=W))
    assert r.status_code == 502
    detail = r.json()["detail"]
    assert detail["error_type"] == "SwapRejected"
    assert detail["retry_available"] is True
    assert detail["states"][-2] == "Submitting"


def test_retry_endpoint(client, session):
    r = client.post("/api/swap/retry", json={"contract_address": CONTRACT})
    assert r.status_code == 409

    session.add_pool(W, G, units(100), units(100))
    session.set_balance(W, units(20))
    session.swap_gas_fails = True
    assert client.post("/api/swap/execute", json=_swap_body(token_in=W)).status_code == 502

    session.swap_gas_fails = False
    r = client.post("/api/swap/retry", json={"contract_address": CONTRACT})
    assert r.status_code == 200
    assert r.json()["state"] == "Confirmed"
    assert client.post("/api/swap/retry", json={"contract_address": CONTRACT}).status_code == 409


def test_owned_pools(client, session):
    session.add_pool(W, G, units(1), units(1), owner=True)

    body = client.get("/api/pools/owned", params={"contract_address": CONTRACT}).json()
    assert body["owner"] == ACCOUNT
    assert len(body["pools"]) == 1

    r = client.get("/api/pools/owned", params={"contract_address": CONTRACT, "owner": "0x12"})
    assert r.status_code == 400


def test_preview_clients_are_bounded(client):
    client.app.state.swap_sessions = BoundedRegistry(2)
    for client_id in ("a", "b", "c"):
        r = client.post("/api/swap/preview", json={"contract_address": CONTRACT, "client_id": client_id})
        assert r.status_code == 200

    registry = client.app.state.swap_sessions
    assert len(registry) == 2
    assert (CONTRACT.lower(), "a") not in registry
    assert (CONTRACT.lower(), "c") in registry


def test_registry_evicts_least_recently_used():
    registry = BoundedRegistry(2)
    registry.get_or_create("x", lambda: 1)
    registry.get_or_create("y", lambda: 2)
    assert registry.get_or_create("x", lambda: 99) == 1
    registry.get_or_create("z", lambda: 3)
    assert "x" in registry and "z" in registry and "y" not in registry
