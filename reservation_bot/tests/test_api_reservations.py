from .conftest import STORE

RESERVATIONS = "/api/v1/reservations"
CUSTOMER = "U123"
OWNER = {"user_id": CUSTOMER}


def booking(**overrides):
    body = {
        "customer_name": "Suzuki",
        "date": "2025-06-07",
        "time": "12:00",
        "people": 3,
        "store_id": STORE,
        "user_id": CUSTOMER,
    }
    body.update(overrides)
    return body


def limit_one_per_hour(client, headers):
    response = client.post("/api/v1/capacity/rules", json={
        "store_id": STORE, "limit_type": "per_hour", "limit_value": 1,
    }, headers=headers)
    return response.json()["data"]["id"]


class TestReservationApi:

    def test_create(self, client):
        response = client.post(RESERVATIONS, json=booking())
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["reservation"]["status"] == "confirmed"
        assert body["decision"]["allowed"] is True

    def test_rejected_booking_answers_409_with_decision(self, client, operator_headers):
        rule_id = limit_one_per_hour(client, operator_headers)
        client.post(RESERVATIONS, json=booking())
        response = client.post(RESERVATIONS, json=booking(time="12:40"))
        assert response.status_code == 409
        body = response.json()
        assert body["error_code"] == "CAPACITY_EXCEEDED"
        assert body["details"]["decision"]["violated_rule"] == rule_id
        assert body["details"]["decision"]["alternative_times"] == []

        listed = client.get(RESERVATIONS, params={"store_id": STORE, "date": "2025-06-07"},
                            headers=operator_headers).json()
        assert listed["total"] == 1

    def test_request_validation(self, client):
        response = client.post(RESERVATIONS, json=booking(people=0))
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_get_update_cancel(self, client):
        reservation_id = client.post(RESERVATIONS, json=booking()).json()["reservation"]["id"]

        fetched = client.get(f"{RESERVATIONS}/{reservation_id}", params=OWNER)
        assert fetched.status_code == 200
        assert fetched.json()["reservation"]["customer_name"] == "Suzuki"

        updated = client.put(f"{RESERVATIONS}/{reservation_id}", json={"time": "13:30", "people": 4},
                             params=OWNER)
        assert updated.status_code == 200
        assert updated.json()["reservation"]["time"] == "13:30:00"
        assert updated.json()["reservation"]["people"] == 4

        canceled = client.delete(f"{RESERVATIONS}/{reservation_id}", params=OWNER)
        assert canceled.status_code == 200
        assert canceled.json()["reservation"]["status"] == "canceled"

    def test_update_into_full_hour(self, client, operator_headers):
        limit_one_per_hour(client, operator_headers)
        client.post(RESERVATIONS, json=booking(time="12:00"))
        later_id = client.post(RESERVATIONS, json=booking(time="14:00")).json()["reservation"]["id"]
        response = client.put(f"{RESERVATIONS}/{later_id}", json={"time": "12:30"}, params=OWNER)
        assert response.status_code == 409
        assert client.get(f"{RESERVATIONS}/{later_id}", params=OWNER).json()["reservation"]["time"] == "14:00:00"

    def test_null_update_rejected_and_booking_kept(self, client):
        reservation_id = client.post(RESERVATIONS, json=booking()).json()["reservation"]["id"]
        response = client.put(f"{RESERVATIONS}/{reservation_id}", json={"date": None}, params=OWNER)
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"
        stored = client.get(f"{RESERVATIONS}/{reservation_id}", params=OWNER).json()["reservation"]
        assert stored["status"] == "confirmed"
        assert stored["date"] == "2025-06-07"

    def test_unknown_reservation(self, client):
        response = client.get(f"{RESERVATIONS}/R-missing")
        assert response.status_code == 404
        assert response.json()["error_code"] == "RESERVATION_NOT_FOUND"

    def test_listing_requires_operator(self, client):
        assert client.get(RESERVATIONS).status_code == 401

    def test_single_reservation_needs_owner_or_operator(self, client, operator_headers):
        reservation_id = client.post(RESERVATIONS, json=booking()).json()["reservation"]["id"]
        url = f"{RESERVATIONS}/{reservation_id}"

        assert client.get(url).status_code == 401
        other = client.delete(url, params={"user_id": "U-someone-else"})
        assert other.status_code == 403
        assert other.json()["error_code"] == "PERMISSION_DENIED"
        assert client.get(url, params=OWNER).json()["reservation"]["status"] == "confirmed"

        canceled = client.delete(url, headers=operator_headers)
        assert canceled.status_code == 200
        assert canceled.json()["reservation"]["status"] == "canceled"
