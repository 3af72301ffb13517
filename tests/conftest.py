import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def simple_chain():
    """X Ltd <- Y Ltd (60%) <- Bob (50%)"""
    return {
        "company_name": "X Ltd",
        "company_number": "00000001",
        "shareholders": [
            {
                "name": "Y Ltd",
                "company_number": "00000002",
                "percentage": 60,
                "shares_held": 600,
                "children": [
                    {"name": "Bob", "percentage": 50, "is_company": False},
                ],
            }
        ],
    }


@pytest.fixture
def sample_item(simple_chain):
    return {
        "id": 42,
        "input_name": "X Ltd",
        "company_number": "00000001",
        "resolved_registry": "Companies House",
        "enrich_status": "done",
        "profile": {
            "company_name": "X LIMITED",
            "company_status": "active",
            "sic_codes": ["62020", "70100"],
            "registered_office_address": {
                "address_line_1": "1 High Street",
                "locality": "London",
                "postal_code": "EC1A 1AA",
            },
        },
        "shareholders": [
            {"name": "Y Ltd", "percentage": 60, "shares_held": 600},
        ],
        "ownership_tree": simple_chain,
        "screening_list": {
            "ownership_chain": [
                {"name": "Y LIMITED", "role": "Parent", "is_company": True, "company_number": "00000002"},
                {"name": "Bob", "role": "Shareholder", "is_company": False},
            ],
            "governance_and_control": [
                {"name": "Smith, John", "role": "Director", "nationality": "British", "dob": "1970-01"},
            ],
            "ubos": [{"name": "Mr John Smith", "role": "UBO"}],
            "trusts": [],
            "entity": [{"name": "X Ltd", "type": "Target", "company_number": "00000001"}],
        },
    }


@pytest.fixture
def client():
    from app import app
    from security import limiter

    previous = limiter.enabled
    limiter.enabled = False
    try:
        yield TestClient(app)
    finally:
        limiter.enabled = previous
