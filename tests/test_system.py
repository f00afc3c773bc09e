# tests/test_system.py - Error envelope, system mode, LC attachments and backups
from datetime import date, timedelta
import io
import json
import uuid
import zipfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select, func

from app.main import app
from app.core.config import settings
from app.models import Account, Customer, JournalEntry
from app.services import company_service
from app.core.system_mode import SystemModeMonitor, LIVE, OFFLINE

from tests.conftest import auth_headers


class TestEnvelope:
    def test_health_reports_mode(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["mode"] == LIVE
        assert response.headers["X-System-Mode"] == LIVE

    def test_unknown_route_uses_envelope(self, client):
        response = client.get("/api/nowhere")
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"]["status_code"] == 404

    def test_bad_uuid_is_422(self, client, seeded):
        response = client.get("/api/company/not-a-uuid/journals", headers=auth_headers(seeded["owner"]))
        assert response.status_code == 422
        assert response.json()["success"] is False

    def test_missing_token_is_401(self, client, company_url):
        response = client.get(f"{company_url}/journals")
        assert response.status_code == 401

    def test_unhandled_error_keeps_envelope_and_mode(self, client):
        def explode():
            raise RuntimeError("boom")

        app.add_api_route("/api/explode", explode)
        try:
            response = TestClient(app, raise_server_exceptions=False).get("/api/explode")
        finally:
            app.router.routes[:] = [r for r in app.router.routes if getattr(r, "path", None) != "/api/explode"]

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert response.json()["error"]["status_code"] == 500
        assert response.headers["X-System-Mode"] == LIVE


class TestSystemMode:
    def _monitor(self, probe, clock):
        return SystemModeMonitor(probe=probe, interval=10, timeout=1, clock=clock)

    def test_failed_probe_goes_offline(self):
        def probe():
            raise ConnectionError("refused")

        monitor = self._monitor(probe, lambda: 0.0)
        assert monitor.check_database() is False
        assert monitor.mode == OFFLINE

    def test_result_is_cached_within_interval(self):
        calls = []
        now = [0.0]
        monitor = self._monitor(lambda: calls.append(1), lambda: now[0])

        monitor.check_database()
        now[0] = 5.0
        monitor.check_database()
        assert len(calls) == 1

        now[0] = 11.0
        monitor.check_database()
        assert len(calls) == 2

    def test_recovers_to_live(self):
        healthy = [False]
        now = [0.0]

        def probe():
            if not healthy[0]:
                raise ConnectionError("down")

        monitor = self._monitor(probe, lambda: now[0])
        monitor.check_database()
        assert monitor.is_offline

        healthy[0] = True
        now[0] = 20.0
        assert monitor.check_database() is True
        assert monitor.is_live


class TestLetterOfCredit:
    def _create(self, client, seeded, company_url):
        response = client.post(
            f"{company_url}/lcs",
            json={
                "lc_number": "LC-2026-01",
                "bank_name": "City Bank",
                "issue_date": date.today().isoformat(),
                "expiry_date": (date.today() + timedelta(days=90)).isoformat(),
                "amount": 25000,
                "conversion_rate": 110,
            },
            headers=auth_headers(seeded["owner"]),
        )
        assert response.status_code == 201
        return response.json()["data"]

    def test_created_open_with_base_amount(self, client, seeded, company_url):
        lc = self._create(client, seeded, company_url)
        assert lc["status"] == "OPEN"
        assert lc["amount_base"] == 2750000

    def test_approve_needs_attachment(self, client, seeded, company_url):
        lc = self._create(client, seeded, company_url)
        response = client.post(f"{company_url}/lcs/{lc['id']}/approve", headers=auth_headers(seeded["owner"]))
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Cannot approve LC without at least one attachment"

    def test_upload_then_approve(self, client, seeded, company_url):
        headers = auth_headers(seeded["owner"])
        lc = self._create(client, seeded, company_url)

        upload = client.post(
            f"{company_url}/attachments/upload",
            data={"entity_type": "LC", "entity_id": lc["id"]},
            files={"file": ("lc-copy.pdf", b"%PDF-1.4 test", "application/pdf")},
            headers=headers,
        )
        assert upload.status_code == 201
        attachment = upload.json()["data"]
        assert attachment["file_size"] == len(b"%PDF-1.4 test")

        related = client.get(f"{company_url}/attachments/related/LC/{lc['id']}", headers=headers).json()["data"]
        assert [a["id"] for a in related] == [attachment["id"]]

        download = client.get(f"{company_url}/attachments/{attachment['id']}/download", headers=headers)
        assert download.content == b"%PDF-1.4 test"

        approved = client.post(f"{company_url}/lcs/{lc['id']}/approve", headers=headers)
        assert approved.json()["data"]["status"] == "APPROVED"

    def test_deleted_attachment_does_not_count(self, client, seeded, company_url):
        headers = auth_headers(seeded["owner"])
        lc = self._create(client, seeded, company_url)
        attachment = client.post(
            f"{company_url}/attachments/upload",
            data={"entity_type": "LC", "entity_id": lc["id"]},
            files={"file": ("lc.pdf", b"data", "application/pdf")},
            headers=headers,
        ).json()["data"]
        client.delete(f"{company_url}/attachments/{attachment['id']}", headers=headers)

        response = client.post(f"{company_url}/lcs/{lc['id']}/approve", headers=headers)
        assert response.status_code == 400

    def test_upload_requires_entity(self, client, seeded, company_url):
        response = client.post(
            f"{company_url}/attachments/upload",
            files={"file": ("a.txt", b"x", "text/plain")},
            headers=auth_headers(seeded["owner"]),
        )
        assert response.status_code == 422

    @pytest.mark.parametrize("entity_type,entity_id", [
        ("../../../escaped", "x"),
        ("LC", ".."),
        ("LC", "../../../../escaped"),
    ])
    def test_upload_stays_inside_upload_dir(self, client, seeded, company_url, entity_type, entity_id):
        escaped = settings.upload_path.resolve().parent.parent / "escaped"

        response = client.post(
            f"{company_url}/attachments/upload",
            data={"entity_type": entity_type, "entity_id": entity_id},
            files={"file": ("a.txt", b"x", "text/plain")},
            headers=auth_headers(seeded["owner"]),
        )
        assert response.status_code == 422
        assert response.json()["error"]["message"].startswith("Invalid entity_")

        assert not escaped.exists()


class TestLoans:
    def test_outstanding_defaults_to_principal(self, client, seeded, company_url):
        response = client.post(
            f"{company_url}/loans",
            json={"loan_number": "TL-9", "bank_name": "City Bank", "principal_amount": 50000,
                  "start_date": date.today().isoformat()},
            headers=auth_headers(seeded["owner"]),
        )
        data = response.json()["data"]
        assert data["outstanding_balance"] == 50000
        assert data["status"] == "ACTIVE"


class TestCompanyBackups:
    def _loan(self, client, seeded, company_url):
        return client.post(
            f"{company_url}/loans",
            json={"loan_number": "TL-1", "bank_name": "City Bank", "principal_amount": 1000,
                  "start_date": date.today().isoformat()},
            headers=auth_headers(seeded["owner"]),
        ).json()["data"]

    def test_generate_and_restore(self, client, seeded, company_url):
        headers = auth_headers(seeded["owner"])
        loan = self._loan(client, seeded, company_url)

        generated = client.post(f"{company_url}/backup/generate", headers=headers)
        assert generated.status_code == 201
        file_name = generated.json()["data"]["file_name"]

        listed = client.get(f"{company_url}/backups", headers=headers).json()["data"]
        assert [b["file_name"] for b in listed] == [file_name]

        client.delete(f"{company_url}/loans/{loan['id']}", headers=headers)
        assert client.get(f"{company_url}/loans", headers=headers).json()["data"] == []

        restored = client.post(f"{company_url}/backup/restore/{file_name}", headers=headers)
        assert restored.status_code == 200
        assert restored.json()["data"]["loans"] == 1
        assert restored.json()["data"]["accounts"] == 8

        loans = client.get(f"{company_url}/loans", headers=headers).json()["data"]
        assert [l["id"] for l in loans] == [loan["id"]]

    def test_download_backup(self, client, seeded, company_url):
        headers = auth_headers(seeded["owner"])
        file_name = client.post(f"{company_url}/backup/generate", headers=headers).json()["data"]["file_name"]
        response = client.get(f"{company_url}/backups/download/{file_name}", headers=headers)
        assert response.status_code == 200
        assert response.content[:2] == b"PK"

    def test_download_rejects_traversal(self, client, seeded, company_url):
        response = client.get(
            f"{company_url}/backups/download/..%2F..%2Fsecret.zip", headers=auth_headers(seeded["owner"])
        )
        assert response.status_code == 404

    def test_accountant_cannot_restore(self, client, seeded, company_url):
        file_name = client.post(
            f"{company_url}/backup/generate", headers=auth_headers(seeded["owner"])
        ).json()["data"]["file_name"]
        response = client.post(
            f"{company_url}/backup/restore/{file_name}", headers=auth_headers(seeded["accountant"])
        )
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Only owners can restore company backups"

    def test_restore_upload_rejects_garbage(self, client, seeded, company_url):
        response = client.post(
            f"{company_url}/backup/restore/upload",
            files={"file": ("backup.zip", io.BytesIO(b"not a zip"), "application/zip")},
            headers=auth_headers(seeded["owner"]),
        )
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Invalid backup archive"

    def _restore_edited(self, client, company_url, headers, edit):
        file_name = client.post(f"{company_url}/backup/generate", headers=headers).json()["data"]["file_name"]
        archive = client.get(f"{company_url}/backups/download/{file_name}", headers=headers).content
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            snapshot = json.loads(zf.read("snapshot.json"))
        edit(snapshot)

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("snapshot.json", json.dumps(snapshot))
        buffer.seek(0)
        return client.post(
            f"{company_url}/backup/restore/upload",
            files={"file": ("backup.zip", buffer, "application/zip")},
            headers=headers,
        )

    @pytest.fixture
    def other(self, seeded, db):
        company = company_service.create_company(db, "Other Mills", owner_id=seeded["admin"].id, code="OTHR")
        account = Account(
            company_id=company.id, account_type_id=seeded["types"]["ASSET"].id,
            code="1000", name="Other Cash", opening_balance=0, current_balance=0,
        )
        db.add(account)
        db.commit()
        return {"company": company, "account": account}

    def test_restored_rows_stay_in_target_company(self, client, seeded, company_url, other, db):
        def add_customer(snapshot):
            snapshot["tables"]["customers"].append({
                "id": str(uuid.uuid4()),
                "company_id": str(other["company"].id),
                "code": "CUS-999999",
                "name": "Injected",
            })

        response = self._restore_edited(client, company_url, auth_headers(seeded["owner"]), add_customer)
        assert response.status_code == 200
        assert response.json()["data"]["customers"] == 1

        db.expire_all()
        other_names = db.execute(
            select(Customer.name).where(Customer.company_id == other["company"].id)
        ).scalars().all()
        assert other_names == []
        own_names = db.execute(
            select(Customer.name).where(Customer.company_id == seeded["company"].id)
        ).scalars().all()
        assert own_names == ["Injected"]

    def test_restore_refuses_foreign_references(self, client, seeded, company_url, other, db):
        entry_id = str(uuid.uuid4())

        def add_foreign_line(snapshot):
            snapshot["tables"]["journal_entries"].append({
                "id": entry_id,
                "company_id": str(seeded["company"].id),
                "entry_number": "JE-2026-0099",
                "entry_date": "2026-10-17",
                "total_debit": 10,
                "total_credit": 10,
                "status": "APPROVED",
            })
            snapshot["tables"]["journal_lines"].append({
                "id": str(uuid.uuid4()),
                "journal_entry_id": entry_id,
                "account_id": str(other["account"].id),
                "debit": 10, "credit": 0, "debit_base": 10, "credit_base": 0,
            })

        response = self._restore_edited(client, company_url, auth_headers(seeded["owner"]), add_foreign_line)
        assert response.status_code == 422
        assert "outside the company" in response.json()["error"]["message"]

        db.expire_all()
        assert db.get(JournalEntry, uuid.UUID(entry_id)) is None
        assert db.execute(
            select(func.count(Account.id)).where(Account.company_id == seeded["company"].id)
        ).scalar_one() == 8


class TestSystemBackups:
    def test_admin_backup(self, client, seeded):
        headers = auth_headers(seeded["admin"])
        response = client.post("/api/system/backup", headers=headers)
        assert response.status_code == 201
        file_name = response.json()["data"]["file_name"]
        assert file_name.startswith("backup-unified-")

        listed = client.get("/api/system/backups", headers=headers).json()["data"]
        assert listed[0]["file_name"] == file_name

    def test_owner_is_forbidden(self, client, seeded):
        response = client.post("/api/system/backup", headers=auth_headers(seeded["owner"]))
        assert response.status_code == 403
