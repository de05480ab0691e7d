# proofchain/common/protocol.py
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict


class WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Status(WireModel):
    code: int
    name: str
    desc: Optional[str] = None

    def success(self) -> bool:
        return self.code == 0 and self.name == "OK"


# ---- principal ----

PUBLIC_KEY = 1


class Key(WireModel):
    kid: str = ""
    key_fingerprint: str = ""
    key_type: int = PUBLIC_KEY
    bundle: str = ""
    mtime: int = 0
    ctime: int = 0


class Basics(WireModel):
    username: str = ""
    ctime: int = 0
    mtime: int = 0
    id_version: int = 0
    track_version: int = 0
    last_id_change: int = 0


class Profile(WireModel):
    mtime: int = 0
    full_name: str = ""
    location: str = ""
    bio: str = ""


class Email(WireModel):
    email: str = ""
    is_verified: int = 0


class Emails(WireModel):
    primary: Email = Email()


class User(WireModel):
    id: str = ""
    basics: Basics = Basics()
    profile: Profile = Profile()
    emails: Emails = Emails()
    public_keys: Dict[str, Key] = {}
    private_keys: Dict[str, Key] = {}

    def primary_key(self) -> Optional[Key]:
        return self.public_keys.get("primary")


# ---- command responses (status already checked by the transport) ----

class SaltResponse(WireModel):
    guest_id: str
    salt: str           # hex
    login_session: str  # base64
    pwh_version: int = 0
    csrf_token: str


class LoginResponse(WireModel):
    session: str
    csrf_token: str
    guest_id: str = ""
    uid: str
    me: User


class NextSeqnoResponse(WireModel):
    seqno: int
    prev: Optional[str] = None
    csrf_token: Optional[str] = None


class PostAuthResponse(WireModel):
    auth_token: str  # hex
    csrf_token: Optional[str] = None


class PostSigResponse(WireModel):
    proof_text: str = ""
    sig_id: str
    proof_id: str
    payload_hash: str = ""
    csrf_token: Optional[str] = None


class KeyAddResponse(WireModel):
    kid: str
    csrf_token: Optional[str] = None


class KeyRevokeResponse(WireModel):
    csrf_token: Optional[str] = None


class LookupResponse(WireModel):
    them: User
