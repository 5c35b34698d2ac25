import hmac
import hashlib
import json
import time

ALGORITHM = "TC3-HMAC-SHA256"
CONTENT_TYPE = "application/json; charset=utf-8"


def _hmac_sha256(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def _sha256_hex(msg: str) -> str:
    return hashlib.sha256(msg.encode("utf-8")).hexdigest()


def encode_payload(payload: dict) -> str:
    # the exact bytes that are hashed must be the bytes that are sent
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def tc3_signature(secret_key: str, date: str, service: str, string_to_sign: str) -> str:
    secret_date = _hmac_sha256(("TC3" + secret_key).encode("utf-8"), date)
    secret_service = _hmac_sha256(secret_date, service)
    secret_signing = _hmac_sha256(secret_service, "tc3_request")
    return hmac.new(secret_signing, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()


def sign_request(
    *,
    secret_id: str,
    secret_key: str,
    service: str,
    host: str,
    action: str,
    version: str,
    region: str,
    payload_str: str,
    timestamp: int | None = None,
) -> dict[str, str]:
    """
    Build the headers for a Tencent Cloud API 3.0 POST request.

    Canonical request = method, uri, query, canonical headers
    (content-type + host), signed header names, sha256(body).
    The date in the credential scope is the UTC date of `timestamp`.
    """
    if timestamp is None:
        timestamp = int(time.time())
    date = time.strftime("%Y-%m-%d", time.gmtime(timestamp))

    signed_headers = "content-type;host"
    canonical_request = "\n".join(
        [
            "POST",
            "/",
            "",
            f"content-type:{CONTENT_TYPE}\nhost:{host}\n",
            signed_headers,
            _sha256_hex(payload_str),
        ]
    )

    credential_scope = f"{date}/{service}/tc3_request"
    string_to_sign = "\n".join(
        [ALGORITHM, str(timestamp), credential_scope, _sha256_hex(canonical_request)]
    )
    signature = tc3_signature(secret_key, date, service, string_to_sign)

    headers = {
        "Authorization": (
            f"{ALGORITHM} Credential={secret_id}/{credential_scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        ),
        "Content-Type": CONTENT_TYPE,
        "Host": host,
        "X-TC-Action": action,
        "X-TC-Timestamp": str(timestamp),
        "X-TC-Version": version,
    }
    if region:
        headers["X-TC-Region"] = region
    return headers
