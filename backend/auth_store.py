"""
In-memory bearer tokens for logged-in operators.
Tokens are lost on restart; operators log in again.
"""
import threading

ACTIVE_TOKENS = {}
_lock = threading.Lock()


def issue_token(token, user_id):
    with _lock:
        ACTIVE_TOKENS[token] = user_id


def revoke_token(token):
    with _lock:
        return ACTIVE_TOKENS.pop(token, None)


def user_for_token(token):
    if not token:
        return None
    with _lock:
        return ACTIVE_TOKENS.get(token)


def token_from_request(req):
    header = req.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return req.headers.get("x-auth-token") or req.args.get("token")


def require_auth(req):
    """Return the user id for the request's token, or None."""
    return user_for_token(token_from_request(req))
