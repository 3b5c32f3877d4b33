"""
In-memory stand-ins for the external clients.

They subclass the production clients and are handed to create_app (or to the
services directly), so the code under test runs unchanged.
"""

import copy
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import stripe
from google.api_core.exceptions import NotFound

from app.models.checkout import PaymentSession
from app.models.firestore import COLLECTION_MODELS
from app.services.firestore_service import FirestoreService
from app.services.inventory.revalidation import RevalidationClient
from app.services.notifications.email_sender import EmailSendError, ResendEmailSender
from app.services.payments.stripe import StripeGateway

VALID_SIGNATURE = "t=1,v1=valid"


def _matches(data: Dict[str, Any], filters: Optional[List[tuple]]) -> bool:
    for field, operator, value in filters or []:
        current = data.get(field)
        if operator == "==":
            ok = current == value
        elif operator == "!=":
            ok = current != value
        elif operator == "in":
            ok = current in value
        elif current is None:
            ok = False
        elif operator == "<":
            ok = current < value
        elif operator == "<=":
            ok = current <= value
        elif operator == ">":
            ok = current > value
        elif operator == ">=":
            ok = current >= value
        else:
            raise ValueError(f"Unsupported operator {operator}")
        if not ok:
            return False
    return True


class FakeFirestoreService(FirestoreService):
    """Dictionary-backed FirestoreService that records every call."""

    def __init__(self):
        super().__init__(database_name="(test)")
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.writes: List[tuple] = []
        self.failures: Dict[Any, Exception] = {}

    def seed(self, collection_name: str, document_id: str, data: Dict[str, Any]) -> None:
        self.collections.setdefault(collection_name, {})[document_id] = copy.deepcopy(data)

    def docs(self, collection_name: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.get(collection_name, {})

    def _record(self, op: str, collection_name: str, document_id: Optional[str] = None):
        self.calls.append((op, collection_name, document_id))
        for key in (op, (op, collection_name)):
            if key in self.failures:
                raise self.failures[key]

    def _record_write(self, op: str, collection_name: str, document_id: Optional[str]):
        self._record(op, collection_name, document_id)
        self.writes.append((op, collection_name, document_id))

    def _model_for(self, collection_name: str, model_class):
        if model_class is None and collection_name in COLLECTION_MODELS:
            return COLLECTION_MODELS[collection_name]
        return model_class

    def _select(
        self,
        collection_name: str,
        filters=None,
        order_by=None,
        descending=False,
        limit=None,
        offset=None,
    ) -> List[Dict[str, Any]]:
        rows = [
            {**copy.deepcopy(data), "id": doc_id}
            for doc_id, data in self.docs(collection_name).items()
            if _matches(data, filters)
        ]
        if order_by:
            rows.sort(key=lambda row: row.get(order_by), reverse=descending)
        if offset:
            rows = rows[offset:]
        if limit:
            rows = rows[:limit]
        return rows

    async def create_document(self, collection_name, document_data, document_id=None):
        document_id = document_id or str(uuid.uuid4())
        self._record_write("create_document", collection_name, document_id)
        now = datetime.now(timezone.utc)
        document_data.setdefault("created_at", now)
        document_data.setdefault("updated_at", now)
        self.seed(collection_name, document_id, document_data)
        return document_id

    async def create_document_if_absent(self, collection_name, document_id, document_data):
        self._record_write("create_document_if_absent", collection_name, document_id)
        if document_id in self.docs(collection_name):
            return False
        now = datetime.now(timezone.utc)
        document_data.setdefault("created_at", now)
        document_data.setdefault("updated_at", now)
        self.seed(collection_name, document_id, document_data)
        return True

    async def get_document(self, collection_name, document_id, model_class=None):
        self._record("get_document", collection_name, document_id)
        data = self.docs(collection_name).get(document_id)
        if data is None:
            return None
        data = {**copy.deepcopy(data), "id": document_id}
        return self._to_model(data, self._model_for(collection_name, model_class))

    async def update_document(self, collection_name, document_id, update_data):
        self._record_write("update_document", collection_name, document_id)
        if document_id not in self.docs(collection_name):
            raise NotFound(f"No document {document_id}")
        update_data["updated_at"] = datetime.now(timezone.utc)
        self.docs(collection_name)[document_id].update(copy.deepcopy(update_data))
        return True

    async def delete_document(self, collection_name, document_id):
        self._record_write("delete_document", collection_name, document_id)
        self.docs(collection_name).pop(document_id, None)
        return True

    async def query_collection(
        self,
        collection_name,
        filters=None,
        order_by=None,
        descending=False,
        limit=None,
        offset=None,
        model_class=None,
    ):
        self._record("query_collection", collection_name)
        model_class = self._model_for(collection_name, model_class)
        rows = self._select(collection_name, filters, order_by, descending, limit, offset)
        return [self._to_model(row, model_class) for row in rows]

    async def count_documents(self, collection_name, filters=None):
        self._record("count_documents", collection_name)
        return len(self._select(collection_name, filters))

    async def increment_field(self, collection_name, document_id, field, amount):
        self._record_write("increment_field", collection_name, document_id)
        data = self.docs(collection_name).get(document_id)
        if data is None:
            raise NotFound(f"No document {document_id}")
        data[field] = data.get(field, 0) + amount

    async def transition_document(self, collection_name, document_id, expected, update_data):
        self._record_write("transition_document", collection_name, document_id)
        data = self.docs(collection_name).get(document_id)
        if data is None:
            return None
        for field, allowed in expected.items():
            if data.get(field) not in allowed:
                return None
        before = {**copy.deepcopy(data), "id": document_id}
        data.update(copy.deepcopy(update_data))
        return before

    async def claim_documents(self, collection_name, filters, count, update_data):
        self._record_write("claim_documents", collection_name, None)
        rows = self._select(collection_name, filters, limit=count)
        if len(rows) < count:
            return []
        for row in rows:
            self.docs(collection_name)[row["id"]].update(copy.deepcopy(update_data))
        return rows

    async def update_documents(self, collection_name, filters, update_data):
        self._record_write("update_documents", collection_name, None)
        rows = self._select(collection_name, filters)
        for row in rows:
            self.docs(collection_name)[row["id"]].update(copy.deepcopy(update_data))
        return len(rows)


class FakeStripeGateway(StripeGateway):
    """Holds Checkout sessions in memory and accepts one fixed webhook signature."""

    def __init__(self):
        super().__init__(api_key="sk_test_fake", webhook_secret="whsec_fake")
        self.sessions: Dict[str, PaymentSession] = {}
        self.calls: List[tuple] = []
        self.created: List[Dict[str, Any]] = []
        self.retrieve_error: Optional[Exception] = None
        self.create_error: Optional[Exception] = None

    def add_session(
        self,
        session_id: str,
        created_at: datetime,
        status: str = "open",
        payment_status: str = "unpaid",
        url: Optional[str] = "https://checkout.stripe.test/pay",
    ) -> PaymentSession:
        session = PaymentSession(
            id=session_id,
            status=status,
            payment_status=payment_status,
            url=url,
            created=int(created_at.timestamp()),
        )
        self.sessions[session_id] = session
        return session

    async def retrieve_session(self, session_id):
        self.calls.append(("retrieve_session", session_id))
        if self.retrieve_error is not None:
            raise self.retrieve_error
        if session_id not in self.sessions:
            raise stripe.InvalidRequestError(f"No such checkout.session: {session_id}", "id")
        return self.sessions[session_id]

    async def create_session(
        self, line_items, customer_email, success_url, cancel_url, metadata, expires_at
    ):
        self.calls.append(("create_session", metadata.get("order_id")))
        if self.create_error is not None:
            raise self.create_error
        self.created.append(
            {
                "line_items": line_items,
                "customer_email": customer_email,
                "success_url": success_url,
                "cancel_url": cancel_url,
                "metadata": metadata,
                "expires_at": expires_at,
            }
        )
        session_id = f"cs_test_{len(self.created)}"
        return self.add_session(
            session_id,
            created_at=datetime.now(timezone.utc),
            url=f"https://checkout.stripe.test/pay/{session_id}",
        )

    def construct_event(self, payload, signature):
        if signature != VALID_SIGNATURE:
            raise stripe.SignatureVerificationError("Signature mismatch", signature)
        return json.loads(payload)


class FakeRevalidationClient(RevalidationClient):
    def __init__(self, acknowledge: bool = True):
        super().__init__(endpoint_url="https://shop.test/api/revalidate", secret="s")
        self.acknowledge = acknowledge
        self.paths: List[str] = []

    async def revalidate_path(self, path):
        self.paths.append(path)
        return self.acknowledge


class FakeEmailSender(ResendEmailSender):
    def __init__(self, failures: int = 0):
        super().__init__(api_key="re_test", sender="Keystore <orders@shop.test>")
        self.failures = failures
        self.sent: List[Dict[str, str]] = []

    async def send(self, to, subject, html):
        if self.failures > 0:
            self.failures -= 1
            raise EmailSendError("503 Service Unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html})
        return f"email_{len(self.sent)}"
