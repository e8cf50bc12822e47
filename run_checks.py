import os

os.environ.setdefault("USE_MOCK_DB", "true")

from fastapi.testclient import TestClient

from app.main import app
from app.services.storage import get_user_store
from app.utils.security import create_access_token

with TestClient(app) as client:
    print('ROOT:')
    print(client.get('/').json())

    print('\nHEALTH:')
    print(client.get('/health').json())

    print('\nDB HEALTH:')
    resp = client.get('/health/db')
    print(resp.status_code, resp.json())

    users = get_user_store()
    client.portal.call(users.insert, {"id": "check-citizen", "name": "Check Citizen", "role": "citizen"})
    client.portal.call(users.insert, {"id": "check-worker", "name": "Check Worker", "role": "waste_worker"})
    citizen = {"Authorization": f"Bearer {create_access_token('check-citizen', 'citizen')}"}
    worker = {"Authorization": f"Bearer {create_access_token('check-worker', 'waste_worker')}"}

    print('\nSUBMIT:')
    resp = client.post('/reports', headers=citizen, data={
        "longitude": "80.27",
        "latitude": "13.08",
        "waste_type": "plastic",
        "estimated_quantity": "small",
        "description": "Smoke check report",
    })
    print(resp.status_code, resp.json().get("message"))
    report_id = resp.json()["report"]["id"]

    print('\nCLAIM:')
    resp = client.put(f'/reports/{report_id}/claim', headers=worker)
    print(resp.status_code, resp.json().get("message"))
