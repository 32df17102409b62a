"""Meta Graph API HTTP client shared by the Facebook and WhatsApp adapters"""

from typing import Any, Dict, Optional, Type

import requests

from linkhub.utils.exceptions import UpstreamError
from linkhub.utils.logger import get_logger

logger = get_logger(__name__)

GRAPH_HOST = "https://graph.facebook.com"
DIALOG_HOST = "https://www.facebook.com"


_PERMISSION_HINT = "A required permission was not granted. Reconnect and accept every requested permission."

# (code, subcode) -> hint; a None subcode matches any subcode of that code
GRAPH_ERROR_HINTS = {
    (190, None): "The stored token expired or was revoked. Reconnect the Page or WhatsApp number.",
    (10, 2018278): "Messenger only allows tagged updates outside the 24 hour window; check the message tag.",
    (10, None): _PERMISSION_HINT,
    (200, None): _PERMISSION_HINT,
    (551, None): "The recipient cannot receive messages from this Page right now.",
    (100, 2018001): "No Messenger thread exists for this recipient; they must message the Page first.",
    (131030, None): "While the WhatsApp app is in test mode, the recipient must be on the allowed numbers list.",
    (131047, None): "More than 24 hours since the customer last replied; send an approved template instead.",
    (132001, None): "The WhatsApp template name or language code does not exist for this account.",
}


def _graph_hint(code: Any, subcode: Any, message: str) -> str:
    if isinstance(code, int):
        subcode = subcode if isinstance(subcode, int) else None
        hint = GRAPH_ERROR_HINTS.get((code, subcode)) or GRAPH_ERROR_HINTS.get((code, None))
        if hint:
            return hint
    if "permission" in message.lower():
        return _PERMISSION_HINT
    if "not authorized" in message.lower():
        return "The Meta app may be in Development mode or missing App Review for this permission."
    return ""


def format_graph_error(err: Any) -> str:
    """
    Render a Graph API error object as one line: message, (code, subcode) and a
    hint for the Page / WhatsApp failure modes users can act on.
    """
    if not isinstance(err, dict):
        return str(err)
    message = str(err.get("message") or "Meta Graph API error")
    code = err.get("code")
    subcode = err.get("error_subcode")

    ids = ", ".join(f"{k}={v}" for k, v in (("code", code), ("subcode", subcode)) if v is not None)
    parts = [message]
    if ids:
        parts.append(f"({ids})")
    hint = _graph_hint(code, subcode, message)
    if hint:
        parts.append(f"Hint: {hint}")
    return " ".join(parts)


class GraphClient:
    """Thin requests wrapper that turns every failure into an UpstreamError subclass"""

    def __init__(
        self,
        version: str = "v22.0",
        timeout: tuple = (10, 30),
        session: Optional[requests.Session] = None,
    ):
        self.version = version
        self.timeout = timeout
        self.base_url = f"{GRAPH_HOST}/{version}"
        self.dialog_url = f"{DIALOG_HOST}/{version}/dialog/oauth"
        self.session = session or requests.Session()

    def request(
        self,
        method: str,
        endpoint: str,
        error_cls: Type[UpstreamError],
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Call the Graph API and return the decoded JSON body.

        Raises:
            error_cls: on network failure, timeout, non-JSON body or Graph error
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        logger.debug("Graph API request", method=method, endpoint=endpoint)
        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise error_cls(f"Meta Graph API timed out ({endpoint})")
        except requests.RequestException as e:
            raise error_cls(f"Meta Graph API request failed: {e}")

        try:
            data = response.json()
        except ValueError:
            raise error_cls(
                f"Meta Graph API returned a non-JSON response (HTTP {response.status_code})",
                http_status=response.status_code,
            )

        if isinstance(data, dict) and "error" in data:
            err = data["error"]
            logger.warning(
                "Graph API error",
                endpoint=endpoint,
                status=response.status_code,
                code=err.get("code") if isinstance(err, dict) else None,
            )
            raise error_cls(
                format_graph_error(err),
                error_code=err.get("code") if isinstance(err, dict) else None,
                error_subcode=err.get("error_subcode") if isinstance(err, dict) else None,
                http_status=response.status_code,
            )
        if response.status_code >= 400:
            raise error_cls(
                f"Meta Graph API error (HTTP {response.status_code})",
                http_status=response.status_code,
            )
        if not isinstance(data, dict):
            raise error_cls("Meta Graph API returned an unexpected response shape")
        return data

    def get(self, endpoint: str, error_cls: Type[UpstreamError], **params: Any) -> Dict[str, Any]:
        return self.request("GET", endpoint, error_cls, params=params)

    def post(
        self,
        endpoint: str,
        error_cls: Type[UpstreamError],
        body: Dict[str, Any],
        **params: Any,
    ) -> Dict[str, Any]:
        return self.request("POST", endpoint, error_cls, params=params, json=body)
