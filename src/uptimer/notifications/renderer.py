import re
from typing import Any, Mapping

TEMPLATE_VARIABLES = frozenset({
    "name",
    "status",
    "previous_status",
    "time",
    "url",
    "response_time",
    "status_code",
    "expected_status",
    "error",
    "details",
    "hostname",
    "ip_addresses",
    "os",
})

_TOKEN = re.compile(r"\$\{(\w+)\}")

DEFAULT_MONITOR_SUBJECT = "[${status}] ${name}"
DEFAULT_MONITOR_BODY = (
    "Monitor: ${name}\n"
    "URL: ${url}\n"
    "Status: ${previous_status} -> ${status}\n"
    "Time: ${time}\n"
    "Response time: ${response_time}ms\n"
    "Status code: ${status_code} (expected ${expected_status})\n"
    "Error: ${error}"
)

DEFAULT_AGENT_SUBJECT = "[${status}] ${name}"
DEFAULT_AGENT_BODY = (
    "Agent: ${name}\n"
    "Host: ${hostname} (${ip_addresses})\n"
    "OS: ${os}\n"
    "Status: ${previous_status} -> ${status}\n"
    "Time: ${time}\n"
    "Details: ${details}"
)


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def render(template: str, variables: Mapping[str, Any]) -> str:
    """Replace ${var} tokens for known variables. Unknown tokens are kept verbatim."""
    if not template:
        return ""

    def substitute(match: re.Match) -> str:
        key = match.group(1)
        if key not in TEMPLATE_VARIABLES or key not in variables:
            return match.group(0)
        return _format_value(variables[key])

    return _TOKEN.sub(substitute, template)


def render_message(subject: str, body: str, variables: Mapping[str, Any]) -> tuple[str, str]:
    return render(subject, variables), render(body, variables)
