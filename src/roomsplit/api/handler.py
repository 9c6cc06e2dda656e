"""Lambda handler for the roomsplit HTTP API.

Accepts both API Gateway REST (v1) and HTTP API (v2) payloads. Routing is
done on the raw request path, so the handler works behind a single
``ANY /{proxy+}`` integration.
"""

import base64
import binascii
import functools
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ulid import ULID

from ..aggregation import summary_for_user
from ..config import Settings
from ..exceptions import AlreadyExistsError, StoreUnavailable, ValidationError
from ..log import StructuredLogger
from ..models import Share, ShareStatus, User, is_amount
from ..notifications import NotificationGateway, Notifier
from ..repository import Repository

logger = StructuredLogger(__name__)

GROUP_ID_PREFIX = "grp-"
BILL_ID_PREFIX = "bill-"

STUB_USER = User(user_id="dummy-user", email="dummy@example.com", name="Stub User")


@dataclass
class Dependencies:
    """Clients shared by every request served from one process."""

    repo: Repository
    notifier: NotificationGateway
    settings: Settings


# ---------------------------------------------------------------------------
# Request/Response helpers
# ---------------------------------------------------------------------------


def json_response(
    status_code: int, body: Any, headers: dict[str, str] | None = None
) -> dict[str, Any]:
    """Create an API Gateway response."""
    response_headers = {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "GET, POST, PATCH, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
    }
    if headers:
        response_headers.update(headers)

    return {
        "statusCode": status_code,
        "headers": response_headers,
        "body": json.dumps(body, default=str),
    }


def error_response(status_code: int, error: str, message: str) -> dict[str, Any]:
    """Create an error response."""
    return json_response(status_code, {"error": error, "message": message})


def parse_body(event: dict[str, Any]) -> dict[str, Any]:
    """
    Decode the JSON request body.

    Raises:
        ValidationError: If the body is not a JSON object
    """
    raw = event.get("body")
    if not raw:
        return {}
    if event.get("isBase64Encoded"):
        try:
            raw = base64.b64decode(raw).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise ValidationError("body", None, "Request body must be valid JSON") from None
    try:
        body = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError("body", None, "Request body must be valid JSON") from None
    if not isinstance(body, dict):
        raise ValidationError("body", None, "Request body must be a JSON object")
    return body


def get_method(event: dict[str, Any]) -> str:
    """HTTP method of a v2 or v1 payload."""
    http: dict[str, Any] = event.get("requestContext", {}).get("http", {})
    return (http.get("method") or event.get("httpMethod") or "GET").upper()


def get_path(event: dict[str, Any]) -> str:
    """Raw request path of a v2 or v1 payload."""
    path: str = event.get("rawPath") or event.get("path") or "/"
    return path


def match_path(path: str, template: str) -> dict[str, str] | None:
    """
    Match a request path against a route template.

    ``{name}`` segments capture path parameters. Returns the parameters,
    or None if the path does not match.
    """
    path_parts = [p for p in path.split("/") if p]
    template_parts = [t for t in template.split("/") if t]
    if len(path_parts) != len(template_parts):
        return None

    params = {}
    for path_part, template_part in zip(path_parts, template_parts, strict=True):
        if template_part.startswith("{") and template_part.endswith("}"):
            params[template_part[1:-1]] = path_part
        elif template_part != path_part:
            return None
    return params


def get_user_from_event(event: dict[str, Any]) -> User | None:
    """Extract the caller from Cognito JWT claims."""
    request_context: dict[str, Any] = event.get("requestContext", {})
    authorizer: dict[str, Any] = request_context.get("authorizer") or {}

    # HTTP API JWT authorizer, then REST API Cognito authorizer
    jwt: dict[str, Any] = authorizer.get("jwt") or {}
    claims: dict[str, Any] = jwt.get("claims") or authorizer.get("claims") or {}
    if not claims.get("sub"):
        return None

    return User(
        user_id=claims["sub"],
        email=claims.get("email"),
        name=(
            claims.get("preferred_username")
            or claims.get("name")
            or claims.get("cognito:username")
            or claims.get("email")
            or "Unknown User"
        ),
    )


def _new_id(prefix: str) -> str:
    return f"{prefix}{ULID()}"


def _parse_shares(raw: Any) -> list[Share]:
    """Validate the ``shares`` array of a bill request."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("shares", raw, "must be a list")

    shares = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"shares[{index}]", entry, "must be an object")
        user_id = entry.get("userId")
        if not isinstance(user_id, str) or not user_id:
            raise ValidationError(f"shares[{index}].userId", user_id, "is required")
        amount = entry.get("amount", 0)
        if not is_amount(amount):
            raise ValidationError(f"shares[{index}].amount", amount, "must be a number")
        status = entry.get("status") or ShareStatus.PENDING
        if not isinstance(status, str):
            raise ValidationError(f"shares[{index}].status", status, "must be a string")
        shares.append(Share(user_id=user_id, amount=amount, status=status))
    return shares


def _parse_member(body: dict[str, Any], user: User) -> User:
    """Joining user: body fields override the caller's claims."""
    user_id = body.get("userId")
    if user_id is not None and (not isinstance(user_id, str) or not user_id):
        raise ValidationError("userId", user_id, "must be a non-empty string")
    for field_name in ("email", "name"):
        value = body.get(field_name)
        if value is not None and not isinstance(value, str):
            raise ValidationError(field_name, value, "must be a string")

    return User(
        user_id=user_id or user.user_id,
        email=body.get("email") or user.email,
        name=body.get("name") or user.name,
    )


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------


def handle_me(
    deps: Dependencies, user: User, event: dict[str, Any], params: dict[str, str]
) -> dict[str, Any]:
    """GET /me - Current user."""
    return json_response(200, user.to_dict())


def handle_summary(
    deps: Dependencies, user: User, event: dict[str, Any], params: dict[str, str]
) -> dict[str, Any]:
    """GET /me/summary - What the current user owes."""
    summary = summary_for_user(deps.repo, user.user_id)
    return json_response(200, summary.to_dict())


def handle_list_groups(
    deps: Dependencies, user: User, event: dict[str, Any], params: dict[str, str]
) -> dict[str, Any]:
    """GET /groups - Groups of the current user."""
    memberships = deps.repo.list_groups_for_user(user.user_id)
    return json_response(200, [m.to_dict() for m in memberships])


def handle_create_group(
    deps: Dependencies, user: User, event: dict[str, Any], params: dict[str, str]
) -> dict[str, Any]:
    """POST /groups - Create a group owned by the current user."""
    body = parse_body(event)
    name = body.get("name")
    if not isinstance(name, str) or not name.strip():
        return error_response(400, "missing_field", "name is required")

    group = deps.repo.create_group(_new_id(GROUP_ID_PREFIX), user, name)
    return json_response(201, group.to_dict())


def handle_get_group(
    deps: Dependencies, user: User, event: dict[str, Any], params: dict[str, str]
) -> dict[str, Any]:
    """GET /groups/{groupId} - Group details with members."""
    group = deps.repo.get_group(params["groupId"])
    if group is None:
        return error_response(404, "not_found", "Group not found")
    return json_response(200, group.to_dict())


def handle_join_group(
    deps: Dependencies, user: User, event: dict[str, Any], params: dict[str, str]
) -> dict[str, Any]:
    """POST /groups/{groupId}/join - Add a member, then subscribe their email."""
    member = _parse_member(parse_body(event), user)

    group = deps.repo.add_member(params["groupId"], member)
    if group is None:
        return error_response(404, "not_found", "Group not found")

    try:
        deps.notifier.subscribe_email(member.email)
    except Exception:
        logger.warning(
            "SNS subscription failed (non-fatal)",
            exc_info=True,
            group_id=params["groupId"],
            user_id=member.user_id,
        )

    return json_response(200, group.to_dict())


def handle_create_bill(
    deps: Dependencies, user: User, event: dict[str, Any], params: dict[str, str]
) -> dict[str, Any]:
    """POST /groups/{groupId}/bills - Create a bill with shares."""
    body = parse_body(event)
    description = body.get("description")
    amount = body.get("amount")
    if not isinstance(description, str) or not description or not is_amount(amount):
        return error_response(
            400, "missing_field", "description and numeric amount are required"
        )

    due_date = body.get("dueDate")
    if due_date is not None and not isinstance(due_date, str):
        raise ValidationError("dueDate", due_date, "must be a date string")

    bill = deps.repo.create_bill(
        params["groupId"],
        _new_id(BILL_ID_PREFIX),
        user,
        description=description,
        amount=amount,
        due_date=due_date,
        shares=_parse_shares(body.get("shares")),
    )
    return json_response(201, bill.to_dict())


def handle_list_bills(
    deps: Dependencies, user: User, event: dict[str, Any], params: dict[str, str]
) -> dict[str, Any]:
    """GET /groups/{groupId}/bills - Bills of a group."""
    bills = deps.repo.list_bills_for_group(params["groupId"])
    return json_response(200, [b.to_dict() for b in bills])


def handle_get_bill(
    deps: Dependencies, user: User, event: dict[str, Any], params: dict[str, str]
) -> dict[str, Any]:
    """GET /groups/{groupId}/bills/{billId} - One bill with shares."""
    bill = deps.repo.get_bill(params["groupId"], params["billId"])
    if bill is None:
        return error_response(404, "not_found", "Bill not found")
    return json_response(200, bill.to_dict())


def handle_update_share(
    deps: Dependencies, user: User, event: dict[str, Any], params: dict[str, str]
) -> dict[str, Any]:
    """PATCH /groups/{groupId}/bills/{billId}/shares/{userId} - Set share status."""
    body = parse_body(event)
    status = body.get("status")
    if not isinstance(status, str) or not status:
        return error_response(400, "missing_field", "status is required")

    bill = deps.repo.update_share_status(
        params["groupId"], params["billId"], params["userId"], status
    )
    if bill is None:
        return error_response(404, "not_found", "Bill or share not found")
    return json_response(200, bill.to_dict())


RouteHandler = Callable[[Dependencies, User, dict[str, Any], dict[str, str]], dict[str, Any]]

ROUTES: list[tuple[str, str, RouteHandler]] = [
    ("GET", "/me", handle_me),
    ("GET", "/me/summary", handle_summary),
    ("GET", "/groups", handle_list_groups),
    ("POST", "/groups", handle_create_group),
    ("GET", "/groups/{groupId}", handle_get_group),
    ("POST", "/groups/{groupId}/join", handle_join_group),
    ("POST", "/groups/{groupId}/bills", handle_create_bill),
    ("GET", "/groups/{groupId}/bills", handle_list_bills),
    ("GET", "/groups/{groupId}/bills/{billId}", handle_get_bill),
    ("PATCH", "/groups/{groupId}/bills/{billId}/shares/{userId}", handle_update_share),
]


# ---------------------------------------------------------------------------
# Main handler
# ---------------------------------------------------------------------------


def handle_request(event: dict[str, Any], deps: Dependencies) -> dict[str, Any]:
    """Route one API Gateway event to its handler."""
    method = get_method(event)
    path = get_path(event)
    logger.info("Request received", method=method, path=path)

    # Handle OPTIONS for CORS preflight
    if method == "OPTIONS":
        return json_response(200, {})

    user = get_user_from_event(event)
    if user is None:
        if not deps.settings.allow_stub_user:
            return error_response(401, "unauthorized", "Missing authorizer claims")
        user = STUB_USER

    for route_method, template, route_handler in ROUTES:
        params = match_path(path, template)
        if params is None or route_method != method:
            continue

        try:
            return route_handler(deps, user, event, params)
        except ValidationError as e:
            return error_response(400, "invalid_request", str(e))
        except AlreadyExistsError as e:
            return error_response(409, "already_exists", str(e))
        except StoreUnavailable as e:
            logger.error("Table unavailable", exc_info=True, method=method, path=path)
            return error_response(503, "store_unavailable", str(e))
        except Exception as e:
            logger.error("Request failed", exc_info=True, method=method, path=path)
            return error_response(500, "internal_error", str(e))

    return error_response(404, "not_found", f"Unknown route: {method} {path}")


@functools.cache
def get_dependencies() -> Dependencies:
    """Build the clients once per Lambda container."""
    settings = Settings.from_environment()
    return Dependencies(
        repo=Repository(
            settings.table_name,
            region=settings.region,
            endpoint_url=settings.endpoint_url,
        ),
        notifier=Notifier(
            settings.sns_topic_arn,
            region=settings.region,
            endpoint_url=settings.endpoint_url,
        ),
        settings=settings,
    )


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Main Lambda handler for the HTTP API."""
    return handle_request(event, get_dependencies())
