"""License records: issuance, agent attribution, search and sort."""
import pytest

from licensehub.licenses.infrastructure import SORTS, build_list_query, escape_like

from tests.conftest import create_agent


def add_customer(client, **overrides):
    body = {"customerName": "Somchai", "productId": "POS-PRO", "licenseKey": "AAAA-BBBB"}
    body.update(overrides)
    resp = client.post("/api/customers", json=body)
    assert resp.status_code == 200, resp.text
    return resp.json()["id"]


def names(resp):
    assert resp.status_code == 200, resp.text
    return [row["customerName"] for row in resp.json()["rows"]]


class TestCreate:
    def test_create_and_get(self, client):
        agent_id = create_agent(client, name="Nok", phone="0811111111", percent=15)
        customer_id = add_customer(
            client,
            phone="0899999999",
            machineId="MID-1",
            expireAt="2027-01-31",
            popupMessage="Renew soon",
            agentId=agent_id,
        )
        resp = client.get(f"/api/customers/{customer_id}")
        assert resp.status_code == 200
        customer = resp.json()["customer"]
        assert customer["customerName"] == "Somchai"
        assert customer["machineId"] == "MID-1"
        assert customer["expireAt"] == "2027-01-31"
        assert customer["popupMessage"] == "Renew soon"
        assert customer["agentId"] == agent_id
        assert customer["agentName"] == "Nok"
        assert customer["agentPhone"] == "0811111111"
        assert customer["issuedAt"]

    def test_optional_fields_may_be_omitted(self, client):
        customer = client.get(f"/api/customers/{add_customer(client)}").json()["customer"]
        assert customer["expireAt"] is None
        assert customer["agentId"] is None
        assert customer["agentName"] is None

    def test_blank_optional_text_is_stored_as_null(self, client):
        customer_id = add_customer(client, phone="  ", machineId="")
        customer = client.get(f"/api/customers/{customer_id}").json()["customer"]
        assert customer["phone"] is None
        assert customer["machineId"] is None

    @pytest.mark.parametrize("missing", ["customerName", "productId", "licenseKey"])
    def test_required_fields(self, client, missing):
        body = {"customerName": "A", "productId": "P", "licenseKey": "K", missing: " "}
        resp = client.post("/api/customers", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"
        assert resp.json()["details"][0]["field"] == missing

    @pytest.mark.parametrize("expire_at", ["31/01/2027", "2027-02-30", "soon"])
    def test_invalid_expiry_date(self, client, expire_at):
        resp = client.post(
            "/api/customers",
            json={"customerName": "A", "productId": "P", "licenseKey": "K", "expireAt": expire_at},
        )
        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] == "expireAt"

    def test_unknown_agent(self, client):
        resp = client.post(
            "/api/customers",
            json={"customerName": "A", "productId": "P", "licenseKey": "K", "agentId": 12},
        )
        assert resp.status_code == 404
        assert resp.json()["error"] == "agent_not_found"
        assert client.get("/api/customers").json()["rows"] == []

    @pytest.mark.parametrize("agent_id", [True, 10**20, 0])
    def test_agent_id_must_be_an_integer_id(self, client, agent_id):
        create_agent(client)
        resp = client.post(
            "/api/customers",
            json={"customerName": "A", "productId": "P", "licenseKey": "K", "agentId": agent_id},
        )
        assert resp.status_code == 400, resp.text
        assert resp.json()["error"] == "invalid_input"
        assert resp.json()["details"][0]["field"] == "agentId"
        assert client.get("/api/customers").json()["rows"] == []

    def test_get_out_of_range_id(self, client):
        resp = client.get(f"/api/customers/{10**20}")
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"
        assert resp.json()["details"][0]["field"] == "customerId"

    def test_get_unknown(self, client):
        resp = client.get("/api/customers/999")
        assert resp.status_code == 404
        assert resp.json()["error"] == "customer_not_found"

    def test_requires_key(self, anon_client):
        assert anon_client.get("/api/customers").status_code == 401


class TestListing:
    def test_search_matches_any_text_column(self, client):
        agent_id = create_agent(client, name="Kittipong", phone="0822222222")
        add_customer(client, customerName="Alpha Shop", licenseKey="KEY-ALPHA")
        add_customer(client, customerName="Beta Mart", productId="ERP", agentId=agent_id)
        add_customer(client, customerName="Gamma", phone="0855555555")

        assert names(client.get("/api/customers", params={"search": "alpha"})) == ["Alpha Shop"]
        assert names(client.get("/api/customers", params={"search": "erp"})) == ["Beta Mart"]
        assert names(client.get("/api/customers", params={"search": "kitti"})) == ["Beta Mart"]
        assert names(client.get("/api/customers", params={"search": "55555"})) == ["Gamma"]
        assert len(names(client.get("/api/customers", params={"search": "  "}))) == 3

    def test_wildcards_match_literally(self, client):
        add_customer(client, customerName="100% Coffee")
        add_customer(client, customerName="1000 Coffee")
        add_customer(client, customerName="a_b")
        add_customer(client, customerName="axb")
        assert names(client.get("/api/customers", params={"search": "100%"})) == ["100% Coffee"]
        assert names(client.get("/api/customers", params={"search": "a_b"})) == ["a_b"]

    def test_sort_by_expiry_puts_undated_last(self, client):
        add_customer(client, customerName="none")
        add_customer(client, customerName="late", expireAt="2030-01-01")
        add_customer(client, customerName="early", expireAt="2026-01-01")

        assert names(client.get("/api/customers")) == ["early", "late", "none"]
        assert names(client.get("/api/customers", params={"sort": "expire_desc"})) == ["late", "early", "none"]

    def test_sort_by_issue_time(self, client):
        for name in ("first", "second", "third"):
            add_customer(client, customerName=name)
        assert names(client.get("/api/customers", params={"sort": "issued_asc"})) == ["first", "second", "third"]
        assert names(client.get("/api/customers", params={"sort": "issued_desc"})) == ["third", "second", "first"]

    def test_unknown_sort_is_rejected(self, client):
        resp = client.get("/api/customers", params={"sort": "customer_name; DROP TABLE customers"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"

    def test_limit(self, client):
        for i in range(5):
            add_customer(client, customerName=f"c{i}")
        assert len(names(client.get("/api/customers", params={"limit": 2}))) == 2
        assert client.get("/api/customers", params={"limit": 201}).status_code == 400


class TestQueryBuilder:
    def test_escape_like(self):
        assert escape_like("50%_off\\") == "50\\%\\_off\\\\"
        assert escape_like("plain") == "plain"

    def test_only_whitelisted_sorts(self):
        for sort in SORTS:
            build_list_query(sort=sort)
        with pytest.raises(ValueError):
            build_list_query(sort="id desc")

    def test_search_term_is_bound_not_inlined(self):
        stmt = build_list_query(search="x' OR 1=1 --")
        assert "OR 1=1" not in str(stmt)
