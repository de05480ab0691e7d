"""
Fixtures: an in-process fake of the identity service behind
httpx.MockTransport, plus a test signer whose output embeds the payload
(the way an attached signature does) so the fake can check chain order.
"""
import base64
import hashlib
import json
import threading
from urllib.parse import parse_qs

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from proofchain.api.session import Session
from proofchain.api.transport import Transport
from proofchain.chain.sequencer import ChainPosition
from proofchain.chain.statement import FrozenStatement, ServiceBindingAssertion
from proofchain.chain.transcript import ChainTranscript
from proofchain.common.config import ClientConfig
from proofchain.common.errors import ChainLinkError
from proofchain.common.protocol import User
from proofchain.common.utils import sha256_hex
from proofchain.crypto.sign import KeyFileSigner, verify

BASE_URL = "https://id.test/_/api/1.0"
PREFIX = "/_/api/1.0/"

USERNAME = "alice"
PASSWORD = b"correct horse"
SALT = b"salt"
LOGIN_SESSION = b"1234"
GUEST_ID = bytes.fromhex("a1b2c3d4")
UID = "94ef1e35789c6fa658b78e1b05eede00"
SESSION_ID = "lgHZIDk0ZWYxZTM1Nzg5YzZmYTY1OGI3OGUxYjA1ZWVkZTAwzlM8kJfNAWmgwMQg"
# HMAC-SHA512(scrypt(PASSWORD, SALT)[192:224], LOGIN_SESSION), recorded
AUTHENTICATOR = "0b470b63cdd8ba741a1a1acb7cd35388bba88eca4397b78f7d3da8261098ef5f"
EXPECTED_HMAC = (
    "52224749ccf6db4241c5a26658dff4d4d45946b4dcd3ba2288baded27e87bd54"
    "ad760ce616a9b38b0311fb007aa82a3781ac161495de58bb24e71d51a2968ff3"
)
KID = "01010b04a1f7963cfb51644ee23a4a066f53917af7157a96891ebb03511e55b9"

BEGIN = b"-----BEGIN TEST SIGNATURE-----"
END = b"-----END TEST SIGNATURE-----"


def ok(**fields):
    return dict({"status": {"code": 0, "name": "OK"}}, **fields)


def fail(code, name, desc=None):
    status = {"code": code, "name": name}
    if desc:
        status["desc"] = desc
    return {"status": status}


class ArmouringSigner:
    """Wraps KeyFileSigner; output carries payload and detached signature."""

    def __init__(self, private_key):
        self.inner = KeyFileSigner([private_key])
        self.public_key = private_key.public_key()
        self.fingerprint = self.inner.fingerprints()[0]
        self.calls = []

    def sign(self, payload: bytes, fingerprint: str) -> bytes:
        self.calls.append((payload, fingerprint))
        signature = self.inner.sign(payload, fingerprint)
        return b"\n".join([
            BEGIN,
            base64.b64encode(payload),
            base64.b64encode(signature),
            END,
        ])


def unarmour(text: str):
    lines = text.encode("ascii").split(b"\n")
    if len(lines) != 4 or lines[0] != BEGIN or lines[3] != END:
        raise ValueError("not a test signature")
    return base64.b64decode(lines[1]), base64.b64decode(lines[2])


class FakeService:
    """Just enough of the identity service to drive the whole workflow."""

    def __init__(self, public_key, fingerprint, has_key=True, tip_seqno=4, tip_digest="abc123"):
        self.public_key = public_key
        self.fingerprint = fingerprint
        self.has_key = has_key
        self.chain = ChainTranscript(tip_seqno, tip_digest)
        self.csrf_counter = 0
        self.csrf_token = "csrf-0"
        self.calls = []
        self.requests = []
        self.fail_next = {}
        self.replies = {}
        self.errors = {}
        self.lock = threading.Lock()
        self.expected_hmac = EXPECTED_HMAC
        self.users = {"bob": self._user("bob", "b0b", with_key=True)}

    # ---- helpers ----

    def _rotate(self):
        self.csrf_counter += 1
        self.csrf_token = f"csrf-{self.csrf_counter}"
        return self.csrf_token

    def _user(self, username, uid, with_key):
        keys = {}
        if with_key:
            keys["primary"] = {
                "kid": KID,
                "key_fingerprint": self.fingerprint,
                "key_type": 1,
                "bundle": f"-----BEGIN PGP PUBLIC KEY BLOCK-----\n{username}\n-----END PGP PUBLIC KEY BLOCK-----",
                "mtime": 1396478000,
                "ctime": 1396478000,
            }
        return {
            "id": uid,
            "basics": {"username": username, "ctime": 1396478000, "mtime": 1396478000},
            "profile": {"full_name": username.title(), "location": "", "bio": ""},
            "public_keys": keys,
        }

    def me(self):
        return self._user(USERNAME, UID, self.has_key)

    def _check_session(self, fields, csrf=True):
        if fields.get("session") != SESSION_ID:
            return fail(201, "BAD_SESSION")
        if csrf and fields.get("csrf_token") != self.csrf_token:
            return fail(202, "CSRF_MISMATCH")
        return None

    def _verified_payload(self, fields):
        payload, signature = unarmour(fields["sig"])
        if not verify(self.public_key, payload, signature):
            raise ValueError("bad signature")
        return payload

    # ---- commands ----

    def getsalt(self, fields):
        if fields.get("email_or_username") != USERNAME:
            return fail(205, "NOT_FOUND", "user not found")
        return ok(
            guest_id=GUEST_ID.hex(),
            salt=SALT.hex(),
            login_session=base64.b64encode(LOGIN_SESSION).decode(),
            pwh_version=1,
            csrf_token=self.csrf_token,
        )

    def login(self, fields):
        if fields.get("csrf_token") != self.csrf_token:
            return fail(202, "CSRF_MISMATCH")
        if fields.get("login_session") != base64.b64encode(LOGIN_SESSION).decode():
            return fail(206, "BAD_LOGIN_SESSION")
        if fields.get("hmac_pwh") != self.expected_hmac:
            return fail(204, "BAD_LOGIN_PASSWORD", "bad password")
        return ok(
            session=SESSION_ID,
            csrf_token=self._rotate(),
            guest_id=GUEST_ID.hex(),
            uid=UID,
            me=self.me(),
        )

    def next_seqno(self, fields):
        error = self._check_session(fields, csrf=False)
        if error:
            return error
        position = self.chain.next_position()
        return ok(seqno=position.seqno, prev=position.prev, csrf_token=self._rotate())

    def post_auth(self, fields):
        error = self._check_session(fields)
        if error:
            return error
        try:
            payload = self._verified_payload(fields)
        except ValueError:
            return fail(901, "SIG_CANNOT_VERIFY")
        if json.loads(payload)["body"]["type"] != "auth":
            return fail(905, "SIG_WRONG_TYPE")
        return ok(auth_token=hashlib.sha256(payload).hexdigest(), csrf_token=self._rotate())

    def post_sig(self, fields):
        error = self._check_session(fields)
        if error:
            return error
        try:
            payload = self._verified_payload(fields)
        except ValueError:
            return fail(901, "SIG_CANNOT_VERIFY")
        wire = json.loads(payload)
        body = wire["body"]
        if fields.get("type") != "web_service_binding." + body["service"]["name"]:
            return fail(905, "SIG_WRONG_TYPE")
        if fields.get("remote_username") != body["service"]["username"]:
            return fail(100, "INPUT_ERROR", "remote_username does not match")
        statement = ServiceBindingAssertion(
            key=body["key"],
            client=body["client"],
            service=body["service"],
            ctime=wire["ctime"],
            expire_in=wire["expire_in"],
            position=ChainPosition(seqno=wire["seqno"], prev=wire["prev"]),
        )
        frozen = FrozenStatement(statement=statement, payload=payload)
        try:
            self.chain.append(frozen)
        except ChainLinkError as e:
            if e.got.seqno < e.expected.seqno:
                return fail(915, "SIG_OLD_SEQNO", str(e))
            return fail(922, "SIG_BAD_TOTAL_ORDER", str(e))
        seqno = wire["seqno"]
        return ok(
            proof_text=f"Verifying myself: I am {USERNAME} on Keybase.io. {seqno}",
            sig_id=sha256_hex(fields["sig"].encode()) + "0f",
            proof_id=f"proof{seqno:04d}",
            payload_hash=sha256_hex(payload),
            csrf_token=self._rotate(),
        )

    def key_add(self, fields):
        error = self._check_session(fields)
        if error:
            return error
        self.has_key = True
        return ok(kid="0120" + sha256_hex(fields["public_key"].encode()), csrf_token=self._rotate())

    def key_revoke(self, fields):
        error = self._check_session(fields)
        if error:
            return error
        if fields.get("revocation_type") != "0":
            return fail(100, "INPUT_ERROR")
        self.has_key = False
        return ok(csrf_token=self._rotate())

    def lookup(self, fields):
        user = self.users.get(fields.get("username"))
        if user is None:
            return fail(205, "NOT_FOUND")
        return ok(them=user)

    ROUTES = {
        ("GET", "getsalt"): getsalt,
        ("POST", "login"): login,
        ("GET", "sig/next_seqno"): next_seqno,
        ("POST", "sig/post_auth"): post_auth,
        ("POST", "sig/post"): post_sig,
        ("POST", "key/add"): key_add,
        ("POST", "key/revoke"): key_revoke,
        ("GET", "user/lookup"): lookup,
    }

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        assert path.startswith(PREFIX) and path.endswith(".json"), path
        command = path[len(PREFIX):-len(".json")]
        if request.method == "GET":
            fields = dict(request.url.params)
        else:
            fields = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}

        with self.lock:
            self.calls.append(command)
            self.requests.append((request.method, command, fields))
            if command in self.errors:
                raise self.errors.pop(command)(f"{command} failed", request=request)
            if command in self.replies:
                return httpx.Response(200, json=self.replies.pop(command))
            if command in self.fail_next:
                return httpx.Response(200, json=fail(*self.fail_next.pop(command)))
            route = self.ROUTES.get((request.method, command))
            if route is None:
                return httpx.Response(404, json=fail(404, "NOT_FOUND"))
            return httpx.Response(200, json=route(self, fields))


@pytest.fixture
def config():
    return ClientConfig(base_url=BASE_URL, host="keybase.io", timeout=5.0)


@pytest.fixture
def private_key():
    return Ed25519PrivateKey.generate()


@pytest.fixture
def signer(private_key):
    return ArmouringSigner(private_key)


@pytest.fixture
def service(signer):
    return FakeService(signer.public_key, signer.fingerprint)


@pytest.fixture
def transport(config, service):
    client = httpx.Client(transport=httpx.MockTransport(service.handler))
    with Transport(config, http_client=client) as t:
        yield t
    client.close()


@pytest.fixture
def session(transport, service):
    """A logged-in session, built directly to keep scrypt out of most tests."""
    service._rotate()
    return Session(
        transport=transport,
        session_id=SESSION_ID,
        guest_id=GUEST_ID.hex(),
        user_id=UID,
        csrf_token=service.csrf_token,
        principal=User.model_validate(service.me()),
    )
