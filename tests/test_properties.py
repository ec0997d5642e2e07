from sqlalchemy.orm import Session

from app.repositories.property import get_property_by_id
from app.services.contract import cancel_contract


def test_owner_lists_property(client, owner_user, owner_token):
    response = client.post(
        "/api/v1/properties",
        json={
            "title": "Room in shared flat",
            "city_name": "Geneva",
            "address": "Rue du Rhone 10",
            "monthly_rent": "900.00",
            "charges": "80.00",
        },
        headers={"Authorization": f"Bearer {owner_token}"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["owner_id"] == owner_user.id
    assert data["status"] == "available"


def test_student_cannot_list_property(client, student_token):
    response = client.post(
        "/api/v1/properties",
        json={"title": "Not mine", "monthly_rent": "900.00"},
        headers={"Authorization": f"Bearer {student_token}"},
    )
    assert response.status_code == 403


def test_rent_must_be_positive(client, owner_token):
    response = client.post(
        "/api/v1/properties",
        json={"title": "Free room", "monthly_rent": "0"},
        headers={"Authorization": f"Bearer {owner_token}"},
    )
    assert response.status_code == 422


def test_list_and_filter_properties(client, rental_property, owner_user, student_token):
    response = client.get(
        "/api/v1/properties",
        params={"owner_id": owner_user.id, "status": "available"},
        headers={"Authorization": f"Bearer {student_token}"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["id"] == rental_property.id


def test_get_unknown_property(client, student_token):
    response = client.get(
        "/api/v1/properties/9999",
        headers={"Authorization": f"Bearer {student_token}"},
    )
    assert response.status_code == 404


def test_property_status_follows_contract(db: Session, rental_property, pending_contract, owner_user, payment_provider):
    db.expire_all()
    assert get_property_by_id(db, rental_property.id).status == "pending"

    cancel_contract(db, pending_contract.id, owner_user, payment_provider)
    db.expire_all()
    assert get_property_by_id(db, rental_property.id).status == "available"


def test_property_rented_once_contract_is_active(db: Session, rental_property, active_contract):
    db.expire_all()
    assert get_property_by_id(db, rental_property.id).status == "rented"
