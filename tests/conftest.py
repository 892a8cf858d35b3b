import json
import os

import pytest

import ctk.config
from ctk.config import CtkConfig
from ctk.models import Record
from ctk.session import Session
from ctk.store import RecordStore


@pytest.fixture(autouse=True)
def reset_config(monkeypatch, tmp_path):
    """Isolate every test from user/local config files and CTK_* variables."""
    for key in list(os.environ):
        if key.startswith("CTK_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    ctk.config._config = None
    yield
    ctk.config._config = None


@pytest.fixture
def sample_services():
    """Sample catalog services, as they come off the wire."""
    return [
        {
            "name": "Demande de passeport",
            "id": "1001",
            "categories": ["Identité", "Voyage"],
            "description": "Obtenir un passeport ordinaire",
            "status": "Active",
            "isActive": True,
            "institutionId": "DGDIE",
            "icon": "passport.svg",
            "url": "https://example.bj/passeport",
        },
        {
            "name": "Déclaration d'impôts",
            "id": "1002",
            "categories": ["Tax", "Health"],
            "description": 'Déclarer ses revenus "en ligne"',
            "status": "Active",
            "isActive": False,
            "institutionId": "DGI",
            "icon": None,
            "url": None,
        },
        {
            "name": "Acte de naissance",
            "id": "1003",
            "categories": [],
            "description": "",
            "status": "Inactive",
            "isActive": False,
            "institutionId": "ANIP",
            "icon": None,
            "url": "",
        },
        {
            "name": "Création d'entreprise",
            "id": "1004",
            "categories": ["Entreprise", "Tax"],
            "description": "Créer une entreprise au guichet unique",
            "status": "Inactive",
            "isActive": True,
            "institutionId": "APIEX",
            "icon": None,
            "url": "https://example.bj/entreprise",
        },
    ]


@pytest.fixture
def catalog_payload(sample_services):
    """A catalog object with an explicit category vocabulary."""
    return {
        "services": sample_services,
        "categories": ["Identité", "Voyage", "Tax", "Health", "Entreprise", "Agriculture"],
    }


@pytest.fixture
def records(sample_services):
    """Sample services as Records."""
    return [Record.from_dict(s) for s in sample_services]


@pytest.fixture
def store(catalog_payload):
    return RecordStore.from_payload(catalog_payload)


@pytest.fixture
def catalog_file(tmp_path, catalog_payload):
    """Catalog written to a JSON file."""
    path = tmp_path / "services.json"
    path.write_text(json.dumps(catalog_payload, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def config():
    return CtkConfig()


@pytest.fixture
def session(config, catalog_payload):
    """Session with the sample catalog loaded."""
    s = Session(config)
    outcome = s.load(catalog_payload)
    assert outcome.ok
    return s
